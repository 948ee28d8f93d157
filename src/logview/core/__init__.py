# This file makes 'core' a Python package.
# Convenience imports for the pieces the view is built from:
from .models import Level, LogRecord, FilterSpec, Pagination, StatsSnapshot, Snapshot, ChartPoint
from .filters import matches, apply_filters, visible_slice
from .log_processor import process_log, process_logs, process_stats
from .storage import LocalLogStore
from .controller import ViewController, SessionState
