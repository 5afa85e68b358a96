"""Tests for the JSON log lines emitted under the studio_kernel logger."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import UUID

import pytest

from studio_kernel.exceptions import (
    InsufficientFundsError,
    InvalidStatusTransitionError,
    ValidationError,
)
from studio_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)

PAYMENT_ID = UUID("00000000-0000-4000-8000-0000000000aa")


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def stream():
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    configure_logging(handler=handler)
    return buffer


def _records(buffer: StringIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line]


class TestPaymentLogLines:

    def test_bound_payment_context(self, stream):
        with LogContext.bind(project_id="prj-7", payment_id=PAYMENT_ID, operation="mark_as_paid"):
            get_logger("modules.contractors").info(
                "contractor_payment_paid", extra={"amount": Decimal("600.00"), "currency": "ARS"},
            )
        get_logger("modules.contractors").info("after")

        paid, after = _records(stream)
        assert paid["logger"] == "studio_kernel.modules.contractors"
        assert paid["project_id"] == "prj-7"
        assert paid["payment_id"] == str(PAYMENT_ID)
        assert paid["operation"] == "mark_as_paid"
        assert paid["amount"] == "600.00"
        assert "payment_id" not in after and "project_id" not in after

    def test_nested_bind_restores_outer_project(self, stream):
        logger = get_logger("modules.project")
        with LogContext.bind(project_id="outer"):
            with LogContext.bind(project_id="inner", payment_id="p-1"):
                logger.info("inner")
            logger.info("outer")

        inner, outer = _records(stream)
        assert (inner["project_id"], inner["payment_id"]) == ("inner", "p-1")
        assert outer["project_id"] == "outer"
        assert "payment_id" not in outer

    def test_unknown_context_field(self):
        with pytest.raises(KeyError):
            LogContext.set(installment_id="nope")

    def test_debug_below_default_level(self, stream):
        get_logger("modules.ledger").debug("balance_read")
        assert _records(stream) == []


class TestExceptionFlattening:

    def test_insufficient_funds(self, stream):
        try:
            raise InsufficientFundsError("project_cash_box", "ARS", Decimal("1500"), Decimal("1000"))
        except InsufficientFundsError:
            get_logger("modules.contractors").error("contractor_payment_failed", exc_info=True)

        (record,) = _records(stream)
        assert record["exc_type"] == "InsufficientFundsError"
        assert record["exc_code"] == "INSUFFICIENT_FUNDS"
        assert record["exc_ledger"] == "project_cash_box"
        assert record["exc_currency"] == "ARS"
        assert record["exc_required"] == "1500"
        assert record["exc_available"] == "1000"
        assert record["exc_shortfall"] == "500"
        assert "Fondos insuficientes" in record["exc_message"]

    def test_validation_field_errors(self, stream):
        try:
            raise ValidationError({"installment_number": "use confirm_down_payment"})
        except ValidationError:
            get_logger("modules.project").warning("installment_payment_rejected", exc_info=True)

        (record,) = _records(stream)
        assert record["exc_code"] == "VALIDATION_FAILED"
        assert record["exc_field_errors"] == {"installment_number": "use confirm_down_payment"}

    def test_status_transition(self, stream):
        try:
            raise InvalidStatusTransitionError("project", "deleted", "payment")
        except InvalidStatusTransitionError:
            get_logger("modules.contractors").error("payout_rejected", exc_info=True)

        (record,) = _records(stream)
        assert record["exc_type"] == "InvalidStatusTransitionError"
        assert "traceback" in record


class TestConfigureLogging:

    def test_second_configuration_is_ignored(self):
        first = logging.StreamHandler(StringIO())
        second = logging.StreamHandler(StringIO())
        configure_logging(handler=first)
        configure_logging(handler=second)

        handlers = logging.getLogger("studio_kernel").handlers
        assert first in handlers
        assert second not in handlers
        assert isinstance(first.formatter, StructuredFormatter)
