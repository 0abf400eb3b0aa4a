# parcel_router/app/seed.py
# default departments and rules; editable afterwards, created only when the stores are empty
from decimal import Decimal

import structlog

from . import constants
from .models import BusinessRule, Department, RuleKind

logger = structlog.get_logger(__name__)

DEFAULT_DEPARTMENTS = [
    (constants.MAIL, "Department responsible for parcels up to 1kg"),
    (constants.REGULAR, "Department responsible for parcels between 1kg and 10kg"),
    (constants.HEAVY, "Department responsible for parcels over 10kg"),
    (constants.INSURANCE, "Department responsible for high-value parcel approval"),
]

# closed intervals, first weight match wins: 1kg goes to Mail, 10kg to Regular.
# Insurance starts one cent above the threshold (value > 1000).
DEFAULT_RULES = [
    ("Mail Weight Rule", RuleKind.WEIGHT, Decimal("0"), Decimal("1"), constants.MAIL),
    ("Regular Weight Rule", RuleKind.WEIGHT, Decimal("1"), Decimal("10"), constants.REGULAR),
    ("Heavy Weight Rule", RuleKind.WEIGHT, Decimal("10"), None, constants.HEAVY),
    ("Insurance Value Rule", RuleKind.VALUE, Decimal("1000.01"), None, constants.INSURANCE),
]


def seed_defaults(departments, rules, with_rules: bool = False):
    """Create the default departments (and optionally rules) on empty stores. Idempotent."""
    created_departments = 0
    if not departments.get_all():
        for name, description in DEFAULT_DEPARTMENTS:
            departments.add(Department(name=name, description=description))
            created_departments += 1
        logger.info("departments_seeded", count=created_departments)
    else:
        logger.info("departments_exist", action="skip_seed")

    created_rules = 0
    if with_rules:
        if not rules.get_all():
            for name, kind, low, high, target in DEFAULT_RULES:
                rules.add(BusinessRule(name=name, kind=kind, min_value=low, max_value=high,
                                       target_department=target,
                                       description=f"{name} routes to {target}"))
                created_rules += 1
            logger.info("rules_seeded", count=created_rules)
        else:
            logger.info("rules_exist", action="skip_seed")

    return created_departments, created_rules
