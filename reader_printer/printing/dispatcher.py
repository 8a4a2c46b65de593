"""
Print queue access for reader-printer.

Enumerates CUPS destinations with ``lpstat`` and submits files with ``lp``.
"""

import re
import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from ..config import get_config
from ..exceptions import PrintFailed, PrinterNotFound
from ..models import Printer, PrintJob, PrintOptions, SIDES_VALUES

logger = logging.getLogger(__name__)

PRINTER_LINE = re.compile(r'^printer\s+(?P<name>\S+)\s+(?P<rest>.*)$')
DESCRIPTION_LINE = re.compile(r'^\s+Description:\s*(?P<description>.*)$')
REQUEST_ID = re.compile(r'request id is (?P<job>\S+)')


def parse_lpstat(output: str) -> List[Printer]:
    """
    Parse ``lpstat -l -p`` output into printers.

    Args:
        output: Raw command output

    Returns:
        Printers in the order listed
    """
    printers: List[Printer] = []
    for line in output.splitlines():
        match = PRINTER_LINE.match(line)
        if match:
            printers.append(Printer(printer_id=match.group('name'),
                                    description=match.group('name'),
                                    status=_parse_status(match.group('rest'))))
            continue

        match = DESCRIPTION_LINE.match(line)
        if match and printers and match.group('description'):
            printers[-1].description = match.group('description').strip()
    return printers


def _parse_status(rest: str) -> str:
    rest = rest.strip()
    if rest.startswith('is idle'):
        return 'idle'
    if rest.startswith('now printing'):
        return 'printing'
    if rest.startswith('disabled'):
        return 'disabled'
    return rest.split('.')[0].replace('is ', '', 1) or 'unknown'


def build_option_args(options: Optional[PrintOptions]) -> List[str]:
    """
    Translate PrintOptions into ``lp`` arguments.

    Unsupported values are dropped with a warning so the device default applies.
    """
    if options is None:
        return []

    args: List[str] = []
    if options.sides:
        if options.sides in SIDES_VALUES:
            args.extend(['-o', f'sides={options.sides}'])
        else:
            logger.warning("Ignoring unsupported duplex mode %r", options.sides)

    if options.media:
        args.extend(['-o', f'media={options.media}'])

    if options.fit_to_page:
        args.extend(['-o', 'fit-to-page'])

    if options.copies is not None:
        try:
            copies = int(options.copies)
        except (TypeError, ValueError):
            copies = 0
        if copies >= 1:
            args.extend(['-n', str(copies)])
        else:
            logger.warning("Ignoring invalid copy count %r", options.copies)

    return args


class PrintDispatcher:
    """
    Submits PDF files to a named print queue and waits for the spooler
    to accept them.
    """

    def __init__(self, lp_command: Optional[str] = None, lpstat_command: Optional[str] = None,
                 timeout: Optional[int] = None, config=None):
        config = config if config is not None else get_config()
        printing_config = config.get_printing_config()

        self.lp_command = lp_command or printing_config.get('lp_command', 'lp')
        self.lpstat_command = lpstat_command or printing_config.get('lpstat_command', 'lpstat')
        self.timeout = timeout or printing_config.get('timeout', 60)

    def list_printers(self) -> List[Printer]:
        """
        Enumerate the configured print queues.

        Returns:
            List of printers; empty if none are configured or the spooler is unavailable
        """
        try:
            result = subprocess.run(
                [self.lpstat_command, '-l', '-p'],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            logger.warning("'%s' not found; is CUPS installed?", self.lpstat_command)
            return []
        except subprocess.TimeoutExpired:
            logger.warning("Printer enumeration timed out after %s seconds", self.timeout)
            return []

        if result.returncode != 0:
            # lpstat exits non-zero when no destinations are added
            logger.debug("lpstat exited with %d: %s", result.returncode, result.stderr.strip())
            return []

        return parse_lpstat(result.stdout)

    def find_printer(self, printer_id: str) -> Printer:
        """
        Look up a printer by exact identifier.

        Raises:
            PrinterNotFound: If no enumerated printer has that identifier
        """
        printers = self.list_printers()
        for printer in printers:
            if printer.printer_id == printer_id:
                return printer
        raise PrinterNotFound(printer_id, [p.printer_id for p in printers])

    def submit(self, file_path: Union[str, Path], printer_id: str,
               options: Optional[PrintOptions] = None) -> PrintJob:
        """
        Send a file to a print queue.

        Args:
            file_path: PDF to print
            printer_id: Destination queue
            options: Printer directives

        Returns:
            The accepted PrintJob

        Raises:
            PrintFailed: If the spooler rejects the job or cannot be reached
        """
        args = [self.lp_command, '-d', printer_id] + build_option_args(options) + [str(file_path)]
        logger.debug("Executing: %s", ' '.join(args))

        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise PrintFailed(printer_id, f"'{self.lp_command}' is not installed or not in PATH") from e
        except subprocess.TimeoutExpired as e:
            raise PrintFailed(printer_id, f"submission timed out after {self.timeout} seconds") from e

        if result.returncode != 0:
            error_output = (result.stderr or result.stdout or "Unknown error").strip()
            raise PrintFailed(printer_id, error_output, exit_code=result.returncode)

        match = REQUEST_ID.search(result.stdout or '')
        job = PrintJob(printer_id=printer_id, file_path=str(file_path),
                       job_id=match.group('job') if match else None)
        logger.info("Print job %s accepted by %s", job.job_id or '(unnamed)', printer_id)
        return job
