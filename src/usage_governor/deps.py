"""Dependency injection singletons for Usage-Governor."""

from usage_governor.admission.controller import AdmissionController
from usage_governor.admission.cooldown import CooldownGuard
from usage_governor.admission.quota import QuotaEvaluator
from usage_governor.admission.rate_limiter import RateLimiter
from usage_governor.audit.service import UsageAuditLog
from usage_governor.common.clock import Clock, utc_now
from usage_governor.common.config import get_settings
from usage_governor.common.database import DatabaseManager
from usage_governor.credits.ledger import CreditLedger
from usage_governor.usage.service import UsageService
from usage_governor.usage.store import UsageRecordStore

_db: DatabaseManager | None = None
_clock: Clock = utc_now
_store: UsageRecordStore | None = None
_audit: UsageAuditLog | None = None
_ledger: CreditLedger | None = None
_rate_limiter: RateLimiter | None = None
_cooldown: CooldownGuard | None = None
_quota: QuotaEvaluator | None = None
_admission: AdmissionController | None = None
_usage: UsageService | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_clock() -> Clock:
    return _clock


def set_clock(clock: Clock) -> None:
    """Swap the time source; call before any service is built."""
    global _clock
    _clock = clock


def get_store() -> UsageRecordStore:
    global _store
    if _store is None:
        _store = UsageRecordStore()
    return _store


def get_audit_log() -> UsageAuditLog:
    global _audit
    if _audit is None:
        _audit = UsageAuditLog(get_db())
    return _audit


def get_credit_ledger() -> CreditLedger:
    global _ledger
    if _ledger is None:
        _ledger = CreditLedger(get_store(), get_audit_log())
    return _ledger


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = RateLimiter(
            get_store(),
            hourly_limit=settings.hourly_rate_limit,
            daily_limit=settings.daily_rate_limit,
        )
    return _rate_limiter


def get_cooldown_guard() -> CooldownGuard:
    global _cooldown
    if _cooldown is None:
        _cooldown = CooldownGuard()
    return _cooldown


def get_quota_evaluator() -> QuotaEvaluator:
    global _quota
    if _quota is None:
        _quota = QuotaEvaluator(get_store())
    return _quota


def get_admission_controller() -> AdmissionController:
    global _admission
    if _admission is None:
        _admission = AdmissionController(
            get_db(),
            get_store(),
            get_rate_limiter(),
            get_cooldown_guard(),
            get_quota_evaluator(),
            get_credit_ledger(),
            get_audit_log(),
            clock=get_clock(),
        )
    return _admission


def get_usage_service() -> UsageService:
    global _usage
    if _usage is None:
        _usage = UsageService(get_settings(), get_store(), clock=get_clock())
    return _usage


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _clock, _store, _audit, _ledger, _rate_limiter, _cooldown, _quota
    global _admission, _usage
    _db = None
    _clock = utc_now
    _store = None
    _audit = None
    _ledger = None
    _rate_limiter = None
    _cooldown = None
    _quota = None
    _admission = None
    _usage = None
