"""Fixtures shared by the contractor tests: a funded project and an assignment."""

from uuid import UUID

import pytest

from studio_modules.admin_fee.models import FeeType

CONTRACTOR_ID = UUID("00000000-0000-4000-a000-000000000003")


@pytest.fixture
def funded_project(project_service, make_request, test_actor_id):
    """A project whose cash box holds 1000 ARS from its down payment, no fee."""
    result = project_service.create_project(
        make_request(
            total="10000", down="1000", count=3,
            fee_type=FeeType.NONE, fee_percentage=None,
        ),
        test_actor_id,
    )
    return result.project


@pytest.fixture
def assignment(contractor_service, funded_project, test_actor_id):
    return contractor_service.assign_contractor(
        funded_project.id, CONTRACTOR_ID, "Corralon Norte", "ARS", test_actor_id,
    )
