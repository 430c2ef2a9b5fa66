"""
HttpMock Server Runners

Ways to host a MockServer for a test session:
- BackgroundServer: uvicorn in a daemon thread of the current process
- ServerProcess: ``python -m httpmock serve`` as a child process
"""

import logging
import socket
import subprocess
import sys
import tempfile
import threading
import time
from typing import List, Optional

import httpx
import uvicorn

from .config import DEFAULT_ADMIN_PREFIX, DEFAULT_PORT
from .server import MockServer

logger = logging.getLogger("httpmock.runner")


def find_free_port(host: str = "127.0.0.1") -> int:
    """Ask the OS for an unused TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def wait_for_ping(base_url: str, admin_prefix: str, timeout: float = 10.0) -> bool:
    """
    Poll the liveness probe until it answers 200.

    Returns:
        True when the server answered within ``timeout``
    """
    deadline = time.monotonic() + timeout
    url = f"{base_url}{admin_prefix}/ping"
    while time.monotonic() < deadline:
        try:
            if httpx.get(url, timeout=1.0).status_code == 200:
                return True
        except httpx.HTTPError:
            pass
        time.sleep(0.05)
    return False


class BackgroundServer:
    """
    Runs a MockServer with uvicorn in a background thread.

    Example:
        with BackgroundServer(MockServer(MockConfig(port=find_free_port()))) as running:
            client = HttpMockClient(running.base_url)
    """

    def __init__(self, server: Optional[MockServer] = None):
        self.server = server or MockServer()
        self._uvicorn: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def base_url(self) -> str:
        config = self.server.config
        return f"http://{config.host}:{config.port}"

    def start(self, timeout: float = 10.0):
        """
        Start serving and block until the server accepts connections.

        Raises:
            RuntimeError: If the server did not start within ``timeout``
        """
        if self.is_running():
            return
        config = self.server.config
        self._uvicorn = uvicorn.Server(uvicorn.Config(
            self.server.app,
            host=config.host,
            port=config.port,
            log_level=config.log_level,
            access_log=config.access_log
        ))
        self._thread = threading.Thread(target=self._uvicorn.run, daemon=True)
        self._thread.start()

        deadline = time.monotonic() + timeout
        while not self._uvicorn.started:
            if time.monotonic() > deadline or not self._thread.is_alive():
                self.stop()
                raise RuntimeError(f"Mock server did not start on {self.base_url}")
            time.sleep(0.01)
        logger.info(f"Mock server running on {self.base_url}")

    def stop(self, timeout: float = 5.0):
        if self._uvicorn is None:
            return
        self._uvicorn.should_exit = True
        if self._thread:
            self._thread.join(timeout=timeout)
        self._uvicorn = None
        self._thread = None
        logger.info(f"Mock server on {self.base_url} stopped")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def ensure_running(self):
        if not self.is_running():
            self.start()

    def __enter__(self) -> 'BackgroundServer':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()


class ServerProcess:
    """
    Runs the mock server as a separate Python process.

    The child's standard error is captured so a test harness can check that
    the server produced no unexpected output.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
        admin_prefix: str = DEFAULT_ADMIN_PREFIX,
        config_path: Optional[str] = None,
        log_level: str = "warning",
        startup_timeout: float = 10.0
    ):
        self.host = host
        self.port = port
        self.admin_prefix = admin_prefix
        self.config_path = config_path
        self.log_level = log_level
        self.startup_timeout = startup_timeout
        self._process: Optional[subprocess.Popen] = None
        self._stderr = None
        self._stderr_offset = 0

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def command(self) -> List[str]:
        cmd = [
            sys.executable, '-m', 'httpmock', 'serve',
            '--host', self.host,
            '--port', str(self.port),
            '--admin-prefix', self.admin_prefix,
            '--log-level', self.log_level,
        ]
        if self.config_path:
            cmd += ['--config', str(self.config_path)]
        return cmd

    def start(self):
        """
        Spawn the server and wait for its liveness probe.

        Raises:
            RuntimeError: If the process exits or does not answer in time
        """
        if self.is_running():
            return
        self._stderr = tempfile.TemporaryFile()
        self._stderr_offset = 0
        logger.info(f"Starting mock server process on {self.base_url}")
        self._process = subprocess.Popen(
            self.command(),
            stdout=subprocess.DEVNULL,
            stderr=self._stderr
        )

        if not wait_for_ping(self.base_url, self.admin_prefix, self.startup_timeout):
            output = self.error_output()
            self.stop()
            raise RuntimeError(f"Mock server process did not become ready on {self.base_url}: {output}")

    def stop(self, timeout: float = 5.0):
        if self._process is None:
            return
        if self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"Mock server process {self._process.pid} did not terminate, killing it")
                self._process.kill()
                self._process.wait()
        self._process = None
        logger.info(f"Mock server process on {self.base_url} stopped")

    def is_running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def ensure_running(self):
        """Restart the process if it is not running (e.g. a test stopped it)."""
        if not self.is_running():
            self.start()

    def error_output(self) -> str:
        """Everything the process wrote to standard error so far."""
        if self._stderr is None:
            return ''
        self._stderr.seek(0)
        return self._stderr.read().decode('utf-8', errors='replace')

    def incremental_error_output(self) -> str:
        """Standard error written since the previous call."""
        if self._stderr is None:
            return ''
        self._stderr.seek(self._stderr_offset)
        data = self._stderr.read()
        self._stderr_offset += len(data)
        return data.decode('utf-8', errors='replace')

    def __enter__(self) -> 'ServerProcess':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
