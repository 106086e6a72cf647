import logging

from django.db import transaction

from .models import District, School

logger = logging.getLogger(__name__)

DEMO_DISTRICT = {
    "name": "Springfield Unified School District",
    "code": "SPRINGFIELD-USD",
    "city": "Springfield",
    "state": "IL",
    "address": "100 Main Street",
    "phone": "(555) 123-4567",
}

DEMO_SCHOOLS = [
    {
        "name": "Springfield Elementary",
        "code": "ELEM-01",
        "city": "Springfield",
        "state": "IL",
        "address": "200 Oak Avenue",
        "grade_levels": ["K", "1", "2", "3", "4", "5"],
    },
    {
        "name": "Springfield Middle School",
        "code": "MID-01",
        "city": "Springfield",
        "state": "IL",
        "address": "300 Maple Street",
        "grade_levels": ["6", "7", "8"],
    },
    {
        "name": "Springfield High School",
        "code": "HIGH-01",
        "city": "Springfield",
        "state": "IL",
        "address": "400 Pine Road",
        "grade_levels": ["9", "10", "11", "12"],
    },
]


def serialize_school(school):
    return {
        "id": school.pk,
        "district_id": school.district_id,
        "name": school.name,
        "code": school.code,
        "city": school.city,
        "state": school.state,
        "address": school.address,
        "grade_levels": school.grade_levels,
        "admin_ids": school.admin_ids,
    }


@transaction.atomic
def seed_demo_district(actor=None):
    """Create the Springfield demo district and its three schools if missing.

    Idempotent: existing rows (matched by code) are left untouched. The
    acting admin, when given, is added to every admin list.

    Returns:
        dict: ``district``, ``schools`` and a ``created`` summary.
    """
    defaults = {key: value for key, value in DEMO_DISTRICT.items() if key != "code"}
    district, district_created = District.objects.get_or_create(
        code=DEMO_DISTRICT["code"], defaults=defaults,
    )
    if actor is not None:
        district.admins.add(actor)

    existing_codes = set(district.schools.values_list("code", flat=True))
    created_schools = 0
    for school_data in DEMO_SCHOOLS:
        if school_data["code"] in existing_codes:
            continue
        fields = {key: value for key, value in school_data.items() if key != "grade_levels"}
        school = School(district=district, **fields)
        school.grade_levels = school_data["grade_levels"]
        school.save()
        if actor is not None:
            school.admins.add(actor)
        created_schools += 1

    logger.info(
        "Seeded demo district %s (district created=%s, schools created=%s)",
        district.code, district_created, created_schools,
    )
    return {
        "district": {"id": district.pk, "name": district.name, "code": district.code},
        "schools": [serialize_school(school) for school in district.schools.all()],
        "created": {"district": district_created, "schools": created_schools},
    }
