"""
命令行工具
"""

from .main import HubServerRunner, build_parser, config_from_args, main

__all__ = [
    "HubServerRunner",
    "build_parser",
    "config_from_args",
    "main",
]
