"""
GitLab Review Gateway

A local HTTP gateway that lets an editor talk to GitLab merge requests
through small JSON requests, relaying normalized responses back.
"""

__version__ = "1.0.0"
__author__ = "GitLab Review Gateway Team"
