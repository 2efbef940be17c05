from .slots import TIME_SLOTS, END_TIMES, build_time_slots, normalize_time
from .conflicts import Candidate, find_conflicts, conflict_message
from .grid import build_grid, quick_create_url
from .view_state import ScheduleView, week_range, VIEW_MODES
from .errors import SchedulingError, ValidationError, BookingConflictError, BookingWriteError
