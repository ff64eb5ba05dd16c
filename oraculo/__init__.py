"""Oraculo core library: horizon task store, daily setup and activity analytics.

Public API re-exports for convenient imports:
    from oraculo import Session, HorizonStore, compute_limit, current_streak, ...
"""

# Errors
from oraculo.errors import (
    OraculoError,
    CapacityExceeded,
    NotFound,
    InvalidSelection,
    PersistenceFailure,
)

# Clock & ids
from oraculo.clock import (
    Clock,
    SystemClock,
    FixedClock,
    date_key,
    new_id,
)

# Models
from oraculo.models import (
    HORIZON_ORDER,
    INTAKE,
    QUARTERLY,
    MONTHLY,
    WEEKLY,
    DAILY,
    Task,
    Horizon,
    HabitCheckIn,
    ActivityEvent,
    DailySetup,
    Document,
)

# Engines
from oraculo.horizons import HorizonStore, PendingConfirmation
from oraculo.ledger import ActivityLedger
from oraculo.daily_setup import (
    DailyAllocationPlanner,
    CommitResult,
    compute_limit,
    needs_daily_setup,
)
from oraculo.streaks import current_streak, habit_grid, is_checked_in_today
from oraculo.heatmap import (
    HeatmapCell,
    PeriodStats,
    activity_level,
    build_year_grid,
    period_range,
    period_stats,
    recap_text,
)

# Workspace & persistence
from oraculo.workspace import Settings, load_settings, workspace_root
from oraculo.storage import JsonDocumentStore, MemoryDocumentStore
from oraculo.session import Session
