"""
Pod Janitor - Kubernetes terminal pod cleanup loop

Periodically removes pods that were evicted, are stuck in CrashLoopBackOff
or ImagePullBackOff, or exited in the Failed phase.
"""

__version__ = "1.0.0"
__author__ = "Pod Janitor Team"
