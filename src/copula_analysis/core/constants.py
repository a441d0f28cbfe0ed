"""
Constants shared across the copula analysis modules.
"""

# Column names of the long-format assessment table
STUDENT_ID_COLUMN = "student_id"
GRADE_COLUMN = "grade"
YEAR_COLUMN = "year"
CONTENT_AREA_COLUMN = "content_area"
SCALE_SCORE_COLUMN = "scale_score"

REQUIRED_COLUMNS = (
    STUDENT_ID_COLUMN,
    GRADE_COLUMN,
    YEAR_COLUMN,
    CONTENT_AREA_COLUMN,
    SCALE_SCORE_COLUMN,
)

# Upper-case names used by the state data exports
COLUMN_ALIASES = {
    "ID": STUDENT_ID_COLUMN,
    "GRADE": GRADE_COLUMN,
    "YEAR": YEAR_COLUMN,
    "CONTENT_AREA": CONTENT_AREA_COLUMN,
    "SCALE_SCORE": SCALE_SCORE_COLUMN,
}

# Conditions with fewer matched students are skipped
DEFAULT_MIN_PAIRS = 100

# Smoothed transforms are clamped to [EPS, 1 - EPS]
PSEUDO_OBS_EPS = 1e-6

# The comonotonic copula has no density with respect to Lebesgue measure,
# so its information criteria are fixed at a sentinel that is larger than
# any likelihood-based AIC/BIC. The sentinel always ranks last.
COMONOTONIC_AIC_SENTINEL = 1.0e10
