"""
Percollate PDF generation for reader-printer.

Runs the external ``percollate`` renderer to turn a webpage into a PDF,
streaming its progress output into the log.
"""

import shutil
import logging
import subprocess
import threading
from pathlib import Path
from typing import List, Optional, Union

from ..config import get_config
from ..exceptions import ConversionFailed

logger = logging.getLogger(__name__)


class PercollateRunner:
    """
    Runner for the percollate command line renderer.

    The call blocks until the child process exits; a non-zero exit code is
    reported as ConversionFailed.
    """

    def __init__(self, command: Optional[List[str]] = None, page_size: Optional[str] = None,
                 timeout: Optional[int] = None, config=None):
        """
        Initialize the runner.

        Args:
            command: Command prefix, e.g. ['percollate'] or ['npx', 'percollate']
            page_size: CSS page size directive value (e.g. 'letter', 'A4')
            timeout: Seconds before the renderer is killed
            config: Config instance (global config if None)
        """
        config = config if config is not None else get_config()
        renderer_config = config.get_renderer_config()

        command = command or renderer_config.get('command') or ['percollate']
        if isinstance(command, str):
            command = command.split()
        self.command = list(command)
        self.page_size = page_size or renderer_config.get('page_size', 'letter')
        self.timeout = timeout or renderer_config.get('timeout', 300)

    def build_command(self, url: str, output_path: Union[str, Path]) -> List[str]:
        """
        Build the renderer command line.

        Args:
            url: Webpage to render
            output_path: Destination PDF path

        Returns:
            List of command arguments
        """
        return self.command + [
            'pdf',
            '--css', f'@page {{ size: {self.page_size} }}',
            '--output', str(output_path),
            url,
        ]

    def render(self, url: str, output_path: Union[str, Path]) -> Path:
        """
        Render ``url`` into ``output_path``.

        Returns:
            Path to the generated PDF

        Raises:
            ConversionFailed: On a non-zero exit, timeout, or missing executable
        """
        args = self.build_command(url, output_path)
        logger.debug("Executing renderer: %s", ' '.join(args[:3]))

        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding='utf-8',
                errors='replace',
            )
        except FileNotFoundError as e:
            raise ConversionFailed(f"Renderer '{self.command[0]}' is not installed or not in PATH") from e

        timed_out = threading.Event()

        def _kill():
            timed_out.set()
            process.kill()

        timer = threading.Timer(self.timeout, _kill)
        timer.start()
        try:
            for line in process.stdout:
                line = line.rstrip()
                if line:
                    logger.debug("percollate: %s", line)
            exit_code = process.wait()
        finally:
            timer.cancel()
            if process.poll() is None:
                process.kill()
                process.wait()
            process.stdout.close()

        if timed_out.is_set():
            raise ConversionFailed(f"Renderer timed out after {self.timeout} seconds")
        if exit_code != 0:
            raise ConversionFailed(f"Renderer failed with exit code {exit_code}", exit_code=exit_code)

        output = Path(output_path)
        if not output.exists() or output.stat().st_size == 0:
            raise ConversionFailed("Renderer produced an empty or missing PDF")
        return output

    def is_available(self) -> bool:
        """Check whether the renderer executable can be found."""
        return shutil.which(self.command[0]) is not None
