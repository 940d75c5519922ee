from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from ..utils.time import Clock, minute_of_day, time_to_minutes
from .repositories import ConfigRepository, ReservationRepository

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = timedelta(seconds=60)


def is_expired(*, day: date, slot_time: time, now: datetime, slot_minutes: int) -> bool:
    today = now.date()
    if day < today:
        return True
    if day == today:
        return time_to_minutes(slot_time) + slot_minutes <= minute_of_day(now)
    return False


class ExpiryReaper:
    """
    Deletes reservations whose slot has fully elapsed.

    Runs at most once per cooldown window per instance. The window is claimed
    synchronously before any I/O, so overlapping calls on the same event loop
    return immediately.
    """

    def __init__(self, clock: Clock, *, cooldown: timedelta = DEFAULT_COOLDOWN) -> None:
        self.clock = clock
        self.cooldown = cooldown
        self.last_run: datetime | None = None

    def _claim(self) -> bool:
        now = self.clock.now()
        if self.last_run is not None and now - self.last_run < self.cooldown:
            return False
        self.last_run = now
        return True

    def reset(self) -> None:
        self.last_run = None

    async def reap(self, res_repo: ReservationRepository, config_repo: ConfigRepository) -> int:
        if not self._claim():
            return 0

        now = self.clock.now()
        rules = await config_repo.get_rules()
        candidates = await res_repo.list_on_or_before(now.date())
        expired_ids = [
            reservation.id
            for reservation in candidates
            if is_expired(
                day=reservation.date,
                slot_time=reservation.time,
                now=now,
                slot_minutes=rules.slot_minutes,
            )
        ]
        if not expired_ids:
            return 0

        deleted = await res_repo.delete_many(expired_ids)
        logger.info("reaped %d expired reservations", deleted)
        return deleted
