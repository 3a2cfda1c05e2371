"""
Bounded polling for reads that are eventually consistent, such as a profile
row created by a signup trigger a moment after the auth user.

Public API:
  poll(fetch, predicate, max_attempts=3, delay=1.0, sleep=time.sleep) -> Result
  fetch_profile(user_id, max_attempts=None, delay=None) -> Result
"""
import logging
import time

from django.conf import settings

from apps.core.exceptions import NotFoundError

from .models import Profile

logger = logging.getLogger(__name__)


class Result:
    """Either ok with a value, or failed with an error. Never both."""

    def __init__(self, value=None, error=None):
        self.value = value
        self.error = error

    @classmethod
    def ok(cls, value):
        return cls(value=value)

    @classmethod
    def fail(cls, error):
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self):
        if self.error is not None:
            raise self.error
        return self.value

    def __repr__(self):
        if self.is_ok:
            return f'<Result ok: {self.value!r}>'
        return f'<Result fail: {self.error!r}>'


def _found(value) -> bool:
    return value is not None


def poll(fetch, predicate=_found, max_attempts: int = 3, delay: float = 1.0, sleep=time.sleep) -> Result:
    """
    Call `fetch()` until `predicate(value)` holds, at most `max_attempts`
    times, sleeping `delay` seconds between attempts (not after the last).

    A NotFoundError from `fetch` counts as a miss. Any other exception
    propagates at once; retrying would not fix it.
    """
    if max_attempts < 1:
        raise ValueError('max_attempts must be at least 1')

    for attempt in range(1, max_attempts + 1):
        try:
            value = fetch()
        except NotFoundError:
            value = None
        else:
            if predicate(value):
                return Result.ok(value)

        if attempt < max_attempts:
            logger.debug('Poll attempt %s/%s missed, retrying in %ss', attempt, max_attempts, delay)
            sleep(delay)

    return Result.fail(NotFoundError(f'Not found after {max_attempts} attempts'))


def fetch_profile(user_id, max_attempts: int = None, delay: float = None) -> Result:
    result = poll(
        lambda: Profile.objects.select_related('user').filter(user_id=user_id).first(),
        max_attempts=max_attempts or settings.PROFILE_FETCH_ATTEMPTS,
        delay=settings.PROFILE_FETCH_DELAY_SECONDS if delay is None else delay,
    )
    if not result.is_ok:
        # Normal right after signup, before the profile trigger has run
        logger.info('Profile not found for user %s', user_id)
    return result
