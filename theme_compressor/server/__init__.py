"""
aiohttp request boundary: form parsing, job submission and result streaming
"""

from .app import create_app, run_server, build_job

__all__ = ['create_app', 'run_server', 'build_job']
