# ============================================================
# WAREHOUSE GEOMETRY
# ============================================================
WAREHOUSE_WIDTH  = 10.0     # metres
WAREHOUSE_HEIGHT = 5.0      # metres
GRID_RESOLUTION  = 0.25     # metres per grid cell
GRID_WIDTH  = int(WAREHOUSE_WIDTH / GRID_RESOLUTION)    # 40 cells
GRID_HEIGHT = int(WAREHOUSE_HEIGHT / GRID_RESOLUTION)   # 20 cells

TOTAL_STORAGE_SLOTS = 200
SLOT_CAPACITY_KG    = 5.0
HIGH_FREQ_SLOTS     = 80    # beside the docks
MED_FREQ_SLOTS      = 80    # middle sections
LOW_FREQ_SLOTS      = 40    # centre V

INPUT_DOCK_POS  = (2, GRID_HEIGHT // 2)                 # left side
OUTPUT_DOCK_POS = (GRID_WIDTH - 2, GRID_HEIGHT // 2)    # right side

SAFETY_CELLS = 2            # 0.5 m at 0.25 m resolution
VEHICLE_CELLS = 1

# ============================================================
# VEHICLES
# ============================================================
CAPACITY_KG          = 20.0
CAPACITY_CRATES      = 5
SPEED_M_PER_MIN      = 1.0
MAX_WORK_MINUTES     = 240.0     # 4 hours continuous operation
CHARGE_RATE          = 24.0      # work minutes restored per elapsed minute
LOW_BUDGET_MINUTES   = 30.0      # idle vehicles below this go charging
TASK_BUFFER_MINUTES  = 10.0
LOAD_BASE_MINUTES    = 2.0
LOAD_PER_CRATE       = 0.5
UNLOAD_BASE_MINUTES  = 1.0
UNLOAD_PER_CRATE     = 0.3
ARRIVAL_EPSILON      = 1e-6      # metres
START_X              = 1.0
START_SPACING        = 2.0
CRATE_WEIGHT_KG      = 4.0

# ============================================================
# SHIFTS
# ============================================================
SHIFTS_PER_DAY           = 2
HOURS_PER_SHIFT          = 12
SHIFT_HANDOFF_MINUTES    = 15.0
HANDOFF_BUDGET_MINUTES   = 60.0   # vehicles below this charge at handoff

# ============================================================
# KPI TARGETS / WEIGHTS
# ============================================================
TARGET_IDLE_FRACTION = 0.10
TARGET_UTILIZATION   = 0.80
TARGET_ON_TIME       = 0.95
TARGET_COMPLETION_MINUTES = 25.0
DEFAULT_KPI_WEIGHTS = {"idle": 0.30, "utilization": 0.40, "on_time": 0.30}

# ============================================================
# DISPATCH SCORING  (engine, greedy)
# ============================================================
DISPATCH_URGENCY_BONUS   = 0.5
DISPATCH_UTILIZATION_W   = 0.3
DISPATCH_DISTANCE_NORM   = 100.0

# ============================================================
# VNS
# ============================================================
VNS_MAX_OUTER_ITERATIONS = 100
VNS_MAX_NO_IMPROVEMENT   = 20
VNS_SHAKING_INTENSITIES  = (1, 2, 3, 5, 7, 10)
VNS_LOCAL_SEARCH_PASSES  = 10
VNS_LOCAL_SEARCH_K       = (1, 2, 3)
VNS_EVALUATION_HORIZON   = 30.0   # simulated minutes per candidate
VNS_DISTANCE_WEIGHT      = 0.4
VNS_BALANCE_WEIGHT       = 0.4
VNS_URGENCY_WEIGHT       = 0.2
VNS_URGENCY_BONUS        = 0.5
VNS_DISTANCE_SCALE       = 10.0
VNS_BALANCE_SCALE        = 5.0

# ============================================================
# DEMAND  (order source)
# ============================================================
SMALL_ORDER_PROB  = 0.40    # 1-2 crates
MEDIUM_ORDER_PROB = 0.35    # 3-4 crates
# remaining 0.25: 5 crates

URGENT_ORDER_PROB = 0.10
NORMAL_ORDER_PROB = 0.70
URGENT_PROB_CAP   = 0.30

ITEM_A_PROB = 0.20
ITEM_B_PROB = 0.50
# remaining 0.30: class C

DEADLINE_MINUTES = {"urgent": 15.0, "normal": 30.0, "low": 60.0}

# (base orders/min, peak multiplier, urgency multiplier) per hour of shift
DEMAND_PATTERNS = {
    1: [
        (0.03, 1.2, 1.0), (0.04, 1.5, 1.1), (0.05, 1.8, 1.2), (0.06, 2.0, 1.3),
        (0.06, 2.0, 1.3), (0.05, 1.8, 1.2), (0.04, 1.5, 1.1), (0.04, 1.3, 1.0),
        (0.03, 1.2, 1.0), (0.03, 1.1, 0.9), (0.02, 1.0, 0.8), (0.02, 0.8, 0.7),
    ],
    # shift 2 runs lighter; hours 8-10 are the maintenance window
    2: [
        (0.02, 0.8, 0.7), (0.02, 0.9, 0.8), (0.03, 1.0, 0.9), (0.03, 1.1, 1.0),
        (0.03, 1.1, 1.0), (0.02, 1.0, 0.9), (0.02, 0.9, 0.8), (0.02, 0.8, 0.7),
        (0.01, 0.7, 0.6), (0.01, 0.7, 0.6), (0.01, 0.6, 0.5), (0.01, 0.5, 0.4),
    ],
}
PEAK_DEMAND_FACTOR = 1.5
