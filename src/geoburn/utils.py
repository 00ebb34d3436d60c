"""
utils.py

Small helpers shared by the engine and the command line.

The public helpers:
- `safe_log_exception(msg, exc, **ctx)` : logs a failure with its stage
- `configure_logging(level, log_file=None)` : root logger setup for the CLI
- `check_burn_value(value, dtype)` : validate a burn value for an output dtype

"""

from typing import Any, Optional
import sys
import logging
import numpy as np

from geoburn.config import LOGGING

logger = logging.getLogger(__name__)


def safe_log_exception(msg: str, exc: Exception, **ctx: Any) -> None:
	"""Log ``exc`` with its traceback under ``msg``.

	A `GeoburnError` is reported as ``<msg> during <stage>: <detail>`` so the
	log line names the failing stage like the CLI's short error does. Extra
	keyword context is appended as ``key=value`` pairs. If the logging call
	itself fails, a compact line is written to `sys.stderr` instead.
	"""
	stage = getattr(exc, 'stage', None)
	if stage is not None:
		head = f'{msg} during {stage}'
		detail = exc.args[0] if exc.args else ''
	else:
		head, detail = msg, exc
	extra = ''.join(f' {k}={v!r}' for k, v in ctx.items())
	try:
		logger.exception('%s: %s%s', head, detail, extra)
	except Exception:
		try:
			sys.stderr.write(f'LOGGING FAILURE: {head}: {detail}{extra}\n')
		except OSError:
			pass


def configure_logging(level: str = LOGGING['level'], log_file: Optional[str] = None) -> logging.Logger:
	"""Configure the root logger with a console handler and an optional file.

	The file handler is opened lazily (``delay=True``) so a run that fails
	before logging anything leaves no empty log behind.
	"""
	handlers = [logging.StreamHandler(sys.stderr)]
	if log_file:
		try:
			handlers.append(logging.FileHandler(log_file, delay=True))
		except OSError as e:
			sys.stderr.write(f'[geoburn] warning: file logging disabled ({e})\n')
	logging.basicConfig(
		level=getattr(logging, str(level).upper(), logging.INFO),
		format=LOGGING['format'],
		handlers=handlers,
		force=True,
	)
	return logging.getLogger('geoburn')


def check_burn_value(value: int, dtype) -> int:
	"""Return ``value`` if it fits ``dtype``; raise ValueError otherwise."""
	dt = np.dtype(dtype)
	if np.issubdtype(dt, np.integer):
		info = np.iinfo(dt)
		if not (info.min <= value <= info.max):
			raise ValueError(f'burn value {value} does not fit {dt.name} [{info.min}, {info.max}]')
	elif np.issubdtype(dt, np.floating):
		if not np.isfinite(dt.type(value)):
			raise ValueError(f'burn value {value} overflows {dt.name}')
	else:
		raise ValueError(f'unsupported output dtype {dt.name}')
	return int(value)
