"""
Auth session — an explicit session object plus a subscription to the
identity provider's auth events, instead of global mutable auth state.

Public API:
  AuthSession
  initialize_session(provider, fetch=fetch_profile) -> AuthSession
  on_auth_state_change(provider, session, callback=None, fetch=fetch_profile) -> Subscription
  SignalAuthProvider

A provider is any object with:
  get_user()             current user or None
  subscribe(listener)    listener(event, user) is called on every auth event
  unsubscribe(listener)
"""
import logging

from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.db import models

from .polling import fetch_profile

logger = logging.getLogger(__name__)


class SessionStatus(models.TextChoices):
    LOADING         = 'loading',         'Loading'
    AUTHENTICATED   = 'authenticated',   'Authenticated'
    UNAUTHENTICATED = 'unauthenticated', 'Unauthenticated'


class AuthEvent(models.TextChoices):
    SIGNED_IN       = 'SIGNED_IN',       'Signed in'
    SIGNED_OUT      = 'SIGNED_OUT',      'Signed out'
    TOKEN_REFRESHED = 'TOKEN_REFRESHED', 'Token refreshed'
    USER_UPDATED    = 'USER_UPDATED',    'User updated'


class AuthSession:
    """Owned by the caller. `profile` may be None for a user whose profile row does not exist yet."""

    def __init__(self, user=None, profile=None, status=SessionStatus.LOADING):
        self.user = user
        self.profile = profile
        self.status = status

    @property
    def is_authenticated(self) -> bool:
        return self.status == SessionStatus.AUTHENTICATED

    @property
    def role(self):
        return self.profile.role if self.profile else None

    def sign_in(self, user, profile=None):
        self.user = user
        self.profile = profile
        self.status = SessionStatus.AUTHENTICATED

    def sign_out(self):
        self.user = None
        self.profile = None
        self.status = SessionStatus.UNAUTHENTICATED

    def __repr__(self):
        return f'<AuthSession {self.status} user={getattr(self.user, "pk", None)}>'


class Subscription:
    """Handle returned by on_auth_state_change. unsubscribe() is idempotent."""

    def __init__(self, provider, listener):
        self._provider = provider
        self._listener = listener
        self.active = True

    def unsubscribe(self):
        if self.active:
            self._provider.unsubscribe(self._listener)
            self.active = False


def _resolve(session: AuthSession, user, fetch) -> None:
    if user is None:
        session.sign_out()
        return
    result = fetch(user.pk)
    session.sign_in(user, result.value if result.is_ok else None)


def initialize_session(provider, fetch=fetch_profile) -> AuthSession:
    """Read the provider's current user and resolve its profile."""
    session = AuthSession()
    _resolve(session, provider.get_user(), fetch)
    return session


def on_auth_state_change(provider, session: AuthSession, callback=None, fetch=fetch_profile) -> Subscription:
    """
    Keep `session` in step with the provider. SIGNED_OUT clears it; every
    other event re-reads the profile. `callback(event, session)` runs after
    the session has been updated.
    """
    def listener(event, user=None):
        if event == AuthEvent.SIGNED_OUT:
            session.sign_out()
        else:
            _resolve(session, user, fetch)
        logger.debug('Auth event %s → %r', event, session)
        if callback is not None:
            callback(event, session)

    provider.subscribe(listener)
    return Subscription(provider, listener)


class SignalAuthProvider:
    """
    Provider backed by Django's login/logout signals. `user` seeds the
    current user, e.g. request.user.
    """

    def __init__(self, user=None):
        self._user = user if user is not None and user.is_authenticated else None
        self._listeners = []

    def get_user(self):
        return self._user

    def subscribe(self, listener):
        self._listeners.append(listener)

    def unsubscribe(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def connect(self):
        user_logged_in.connect(self._on_login, dispatch_uid=f'auth-provider-in-{id(self)}')
        user_logged_out.connect(self._on_logout, dispatch_uid=f'auth-provider-out-{id(self)}')
        return self

    def disconnect(self):
        user_logged_in.disconnect(dispatch_uid=f'auth-provider-in-{id(self)}')
        user_logged_out.disconnect(dispatch_uid=f'auth-provider-out-{id(self)}')

    def emit(self, event, user=None):
        self._user = None if event == AuthEvent.SIGNED_OUT else user
        for listener in list(self._listeners):
            listener(event, self._user)

    def _on_login(self, sender, request=None, user=None, **kwargs):
        self.emit(AuthEvent.SIGNED_IN, user)

    def _on_logout(self, sender, request=None, user=None, **kwargs):
        self.emit(AuthEvent.SIGNED_OUT)
