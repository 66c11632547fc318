"""
Business rule thresholds and lookup tables for booking analytics and
guest scoring.
All values are named here so they can be tuned and tested independently
of the aggregation and scoring passes.
"""

# ---------------------------------------------------------------------------
# Lead-time buckets (days between booking and arrival)
# Evaluated in order; the first upper bound that fits wins.
# ---------------------------------------------------------------------------
LEAD_TIME_BUCKETS = [
    (1, "Same Day"),
    (3, "1-3 Days"),
    (7, "4-7 Days"),
    (14, "1-2 Weeks"),
    (30, "2-4 Weeks"),
    (60, "1-2 Months"),
    (90, "2-3 Months"),
]
LEAD_TIME_OVERFLOW_BUCKET = "3+ Months"

# Lead time at or below which a booking counts as last-minute
LAST_MINUTE_MAX_LEAD_TIME = 3

# Lead time above which a booking counts as an advance booking
ADVANCE_MIN_LEAD_TIME = 30

# OTA bookings with lead time in [min, max) are flagged high cancellation risk
HIGH_RISK_LEAD_TIME_MIN = 15
HIGH_RISK_LEAD_TIME_MAX = 60

# ---------------------------------------------------------------------------
# Channel commission rates
# Case-insensitive substring match against the channel name, first rule wins.
# ---------------------------------------------------------------------------
COMMISSION_RULES = [
    (("direct",), 0.03),
    (("booking", "expedia", "ota", "online"), 0.18),
    (("corporate", "business"), 0.05),
    (("travel", "agent"), 0.10),
    (("group",), 0.08),
]
DEFAULT_COMMISSION_RATE = 0.10

# Direct channel: exact channel name, case-insensitive
DIRECT_CHANNEL_NAMES = ("direct",)
OTA_CHANNEL_KEYWORDS = ("ota", "booking", "expedia", "online")
CORPORATE_SEGMENT_KEYWORDS = ("corporate", "business")
LEISURE_SEGMENT_KEYWORDS = ("leisure",)

# Labels used when a booking leaves a dimension blank
DEFAULT_CHANNEL = "Direct"
DEFAULT_SEGMENT = "Leisure"
DEFAULT_ROOM_TYPE = "Standard"
DEFAULT_COUNTRY = "Unknown"
UNKNOWN_LABEL = "Unknown"
NOT_AVAILABLE = "N/A"

# ---------------------------------------------------------------------------
# Snapshot approximations
# ---------------------------------------------------------------------------

# Share of confirmed bookings treated as occupied inventory (no room count in data)
OCCUPANCY_PROXY_FACTOR = 0.7

# Reference ADR for the revenue / pricing indices
BENCHMARK_ADR = 150.0

# A confirmed booking above this multiple of the mean booking value is high value
HIGH_VALUE_BOOKING_MULTIPLIER = 2.0

# Days in the booking-velocity window
BOOKING_VELOCITY_DAYS = 365

TOP_N_COUNTRIES = 10

# Staffing recommendation by total bookings (checked from the top)
STAFFING_LEVELS = [
    (1000, "peak"),
    (500, "high"),
    (200, "normal"),
]
DEFAULT_STAFFING_LEVEL = "low"

# Static holiday lifts (%) reported with the seasonality view
HOLIDAY_IMPACT = [
    ("Christmas", 15),
    ("Easter", 10),
    ("Summer", 25),
    ("New Year", 20),
]

# ---------------------------------------------------------------------------
# Seasonality
# ---------------------------------------------------------------------------
SEASONAL_PEAK_FACTOR = 1.2
SEASONAL_TROUGH_FACTOR = 0.8
MONTHS_PER_YEAR = 12

# Month-over-month movement (%) before demand is called growing / declining
DEMAND_TREND_THRESHOLD = 10.0

# Month-over-month movement (points) before cancellations are called a trend
CANCELLATION_TREND_THRESHOLD = 5.0

# ---------------------------------------------------------------------------
# Heuristic forecast multipliers
# Static multipliers, not a fitted model.
# ---------------------------------------------------------------------------
NEXT_MONTH_REVENUE_MULTIPLIER = 1.05
YEAR_END_REVENUE_MULTIPLIER = 1.10
YEAR_END_BOOKINGS_MULTIPLIER = 1.10
NEXT_MONTH_OCCUPANCY = 70

# ---------------------------------------------------------------------------
# Composite health score weights
# ---------------------------------------------------------------------------
HEALTH_WEIGHT_CANCELLATION = 0.3
HEALTH_WEIGHT_REPEAT = 0.2
HEALTH_WEIGHT_DIRECT = 0.3
HEALTH_WEIGHT_OTA = 0.2
HEALTH_OTA_BASELINE = 50

# Competitive position by health score (strictly greater than)
LEADER_HEALTH_SCORE = 75
CHALLENGER_HEALTH_SCORE = 50

# Guest satisfaction proxy = repeat share x this factor (capped at 100)
SATISFACTION_REPEAT_FACTOR = 500

# ---------------------------------------------------------------------------
# Guest performance view
# ---------------------------------------------------------------------------

# Stay-length bands for spend by length of stay (nights <= bound)
LOS_SPEND_BUCKETS = [
    (1, "1 Night"),
    (3, "2-3 Nights"),
    (7, "4-7 Nights"),
    (14, "8-14 Nights"),
]
LOS_SPEND_OVERFLOW_BUCKET = "15+ Nights"

# Meteorological seasons by arrival month
SEASONS = [
    ("Winter", (12, 1, 2)),
    ("Spring", (3, 4, 5)),
    ("Summer", (6, 7, 8)),
    ("Autumn", (9, 10, 11)),
]

# Guest country values counted as domestic (exact, case-insensitive)
DOMESTIC_COUNTRIES = (
    "gb", "gbr", "uk", "united kingdom",
    "england", "scotland", "wales", "northern ireland",
)

# A guest whose revenue exceeds this multiple of the mean guest revenue is high value
HIGH_VALUE_GUEST_MULTIPLIER = 2.0

SPEND_PERCENTILES = (25, 50, 75, 90, 99)

# Party types, in report order
PARTY_TYPE_ORDER = ["Solo", "Couple", "Family", "Group"]

# Satisfaction proxy = repeat-guest share x w1 + (100 - cancellation rate) x w2
SATISFACTION_REPEAT_WEIGHT = 0.5
SATISFACTION_RETENTION_WEIGHT = 0.5

# ---------------------------------------------------------------------------
# Strength / improvement flags
# ---------------------------------------------------------------------------
STRONG_DIRECT_RATE = 30
HIGH_LOYALTY_SHARE = 0.2
LOW_CANCELLATION_SHARE = 0.1
DIVERSE_GEOGRAPHY_MIN_COUNTRIES = 5
HIGH_OTA_DEPENDENCY = 50
HIGH_CANCELLATION_SHARE = 0.15
HIGH_LAST_MINUTE_SHARE = 0.3
LOW_RETENTION_SHARE = 0.1
OTA_SHIFT_INSIGHT_DEPENDENCY = 40
OTA_SHIFT_FRACTION = 0.3
HIGH_RISK_INSIGHT_MIN_BOOKINGS = 10
WEEKEND_UNDERPERFORMANCE_RATIO = 0.5
STRONG_DIRECT_STRATEGY_RATE = 40
GROWTH_POTENTIAL_OTA_DEPENDENCY = 40
HIGH_RISK_CANCELLATION_SHARE = 0.2
MEDIUM_RISK_CANCELLATION_SHARE = 0.1
CURRENCY_SYMBOL = "£"

# ---------------------------------------------------------------------------
# RFM breakpoints
# Recency: days since last arrival <= limit -> score
# Frequency / monetary: value >= limit -> score
# Anything below the last breakpoint scores 1.
# ---------------------------------------------------------------------------
RECENCY_BREAKPOINTS = [(30, 5), (90, 4), (180, 3), (365, 2)]
FREQUENCY_BREAKPOINTS = [(10, 5), (5, 4), (3, 3), (2, 2)]
MONETARY_BREAKPOINTS = [(5000, 5), (2000, 4), (1000, 3), (500, 2)]
MIN_RFM_SCORE = 1

# ---------------------------------------------------------------------------
# Lifecycle rules, first match wins:
# (stage, min_bookings, max_bookings, min_recency, max_recency)
# ---------------------------------------------------------------------------
LIFECYCLE_RULES = [
    ("first_timer", 1, 1, 4, None),
    ("champion", 5, None, 4, None),
    ("loyal", 3, None, 3, None),
    ("returning", 2, None, 3, None),
    ("at_risk", 2, None, None, 2),
    ("churned", None, None, None, 1),
]
DEFAULT_LIFECYCLE_STAGE = "first_timer"
LIFECYCLE_STAGE_ORDER = ["first_timer", "returning", "loyal", "champion", "at_risk", "churned"]

# ---------------------------------------------------------------------------
# Loyalty tiers, first match wins. A tier matches when any of its clauses
# holds; a clause is (min_rfm, min_bookings, min_revenue).
# ---------------------------------------------------------------------------
LOYALTY_RULES = [
    ("platinum", [(4, 5, 2000)]),
    ("gold", [(4, None, None), (None, 3, 1000)]),
    ("silver", [(3, None, None), (None, 2, None)]),
]
DEFAULT_LOYALTY_TIER = "bronze"
LOYALTY_TIER_ORDER = ["bronze", "silver", "gold", "platinum"]
VIP_TIERS = ("gold", "platinum")

# ---------------------------------------------------------------------------
# Predictive guest scores (heuristics, not fitted models)
# ---------------------------------------------------------------------------

# CLV = avg spend x min(bookings, cap) x (recency / 5) x lifespan
CLV_ANNUAL_FREQUENCY_CAP = 4
CLV_LIFESPAN_YEARS = 3

CHURN_RECENCY_WEIGHT = 15
CHURN_FREQUENCY_WEIGHT = 10
CHURN_CANCELLATION_WEIGHT = 2
CHURN_CANCELLATION_CAP = 30

UPSELL_BASE = 50
UPSELL_HIGH_SPEND = 300
UPSELL_HIGH_SPEND_BONUS = 15
UPSELL_MIN_FREQUENCY = 3
UPSELL_FREQUENCY_BONUS = 15
UPSELL_PREMIUM_ROOM_KEYWORDS = ("suite", "deluxe")
UPSELL_PREMIUM_ROOM_BONUS = 10

AMBASSADOR_MULTIPLIER = 20
AMBASSADOR_CANCELLATION_LIMIT = 20
AMBASSADOR_CANCELLATION_PENALTY = 20

# Weekend arrivals (datetime.weekday(): Friday=4, Saturday=5, Sunday=6)
WEEKEND_ARRIVAL_DAYS = (4, 5, 6)

# Travel type by mean party composition
FAMILY_MIN_AVG_CHILDREN = 0.5
GROUP_MIN_AVG_ADULTS = 3
COUPLE_MIN_AVG_ADULTS = 1.5

# ---------------------------------------------------------------------------
# Guest read-back views
# ---------------------------------------------------------------------------
AT_RISK_CHURN_SCORE = 70
MEDIUM_CHURN_SCORE = 40
TOP_N_PROFILES = 10
DEFAULT_DIRECTORY_LIMIT = 50

# CLV tiers for segmentation: (min clv, label), first match wins
CLV_TIERS = [(50000, "Elite"), (10000, "High"), (2000, "Medium"), (0, "Low")]
