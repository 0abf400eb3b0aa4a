# parcel_router/app/constants.py
# fallback thresholds used when no configured rule matches
from decimal import Decimal

INSURANCE_VALUE_THRESHOLD = Decimal("1000")
MAIL_WEIGHT_THRESHOLD = Decimal("1")
REGULAR_WEIGHT_THRESHOLD = Decimal("10")

# default department names (seeded at startup, editable afterwards)
MAIL = "Mail"
REGULAR = "Regular"
HEAVY = "Heavy"
INSURANCE = "Insurance"

# manifest addresses only carry street/number/postcode/city
DEFAULT_NEIGHBORHOOD = "Default"
DEFAULT_STATE = "NL"
DEFAULT_COUNTRY = "Netherlands"

# decimal places kept for amounts; matches the Numeric column scales
WEIGHT_PLACES = 3
VALUE_PLACES = 2
RULE_PLACES = 3
