"""Detach the process from its controlling terminal (POSIX only)."""

import os
import signal
import sys


def daemonize(workdir: str = "/") -> None:
    """
    Turn the current process into a daemon.

    Classic double fork: the first child becomes a session leader, the
    second can never reacquire a controlling terminal. Standard streams are
    pointed at /dev/null. The parents exit with status 0.
    """
    if os.fork() > 0:
        os._exit(0)

    os.setsid()
    signal.signal(signal.SIGHUP, signal.SIG_IGN)

    if os.fork() > 0:
        os._exit(0)

    os.umask(0)
    os.chdir(workdir)

    sys.stdout.flush()
    sys.stderr.flush()
    devnull = os.open(os.devnull, os.O_RDWR)
    for fd in (0, 1, 2):
        os.dup2(devnull, fd)
    if devnull > 2:
        os.close(devnull)
