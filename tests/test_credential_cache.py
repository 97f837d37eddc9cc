from dataclasses import replace
from datetime import timedelta

import pytest

from conftest import T0, MemoryStore, ScriptedAuthority, make_credential
from streamkeeper.auth.cache import CredentialCache, CredentialState
from streamkeeper.auth.errors import AuthInvalid, CredentialAbsent, CredentialRevoked


def _cache(store, authority, clock, **kwargs):
    kwargs.setdefault("safety_margin", timedelta(seconds=300))
    return CredentialCache(store, authority, clock=clock, **kwargs)


def test_absent_credential_triggers_consent_exactly_once(clock):
    store = MemoryStore()
    authority = ScriptedAuthority()
    cache = _cache(store, authority, clock)

    first = cache.get()
    for _ in range(5):
        assert cache.get() is first

    assert authority.consent_calls == 1
    assert store.persisted == [first]
    assert cache.state is CredentialState.VALID


def test_valid_credential_is_returned_without_network(clock):
    cred = make_credential(expires_in=3600)
    authority = ScriptedAuthority()
    cache = _cache(MemoryStore(cred), authority, clock)

    assert cache.get() == cred
    assert authority.refresh_calls == 0
    assert authority.consent_calls == 0


def test_credential_inside_safety_margin_is_refreshed_and_persisted(clock):
    store = MemoryStore(make_credential(expires_in=120))
    authority = ScriptedAuthority()
    cache = _cache(store, authority, clock)

    fresh = cache.get()

    assert fresh.access_token == "tok-refresh-1"
    assert store.persisted == [fresh]
    assert cache.state is CredentialState.VALID


def test_credential_without_expiry_counts_as_expiring(clock):
    store = MemoryStore(replace(make_credential(), expiry=None))
    authority = ScriptedAuthority()

    _cache(store, authority, clock).get()

    assert authority.refresh_calls == 1


def test_revoked_refresh_token_falls_back_to_consent(clock):
    store = MemoryStore(make_credential(expires_in=10))
    authority = ScriptedAuthority(revoked=True)
    cache = _cache(store, authority, clock)

    cred = cache.get()

    assert authority.refresh_calls == 1
    assert authority.consent_calls == 1
    assert cred.access_token == "tok-consent-1"
    assert store.discarded == ["client-1"]
    assert store.records["client-1"] == cred


def test_missing_refresh_token_goes_straight_to_consent(clock):
    store = MemoryStore(make_credential(expires_in=10, refresh_token=None))
    authority = ScriptedAuthority()

    _cache(store, authority, clock).get()

    assert authority.refresh_calls == 0
    assert authority.consent_calls == 1


def test_non_interactive_absent_raises(clock):
    cache = _cache(MemoryStore(), ScriptedAuthority(), clock, interactive=False)

    with pytest.raises(CredentialAbsent):
        cache.get()
    assert cache.state is CredentialState.ABSENT


def test_non_interactive_revoked_raises_and_stays_revoked(clock):
    store = MemoryStore(make_credential(expires_in=10))
    cache = _cache(store, ScriptedAuthority(revoked=True), clock, interactive=False)

    with pytest.raises(CredentialRevoked):
        cache.get()
    assert cache.state is CredentialState.REVOKED

    # still revoked on the next call, no stale token handed out
    with pytest.raises(AuthInvalid):
        cache.get()


def test_force_refresh_after_remote_rejection(clock):
    store = MemoryStore(make_credential(expires_in=3600))
    authority = ScriptedAuthority()
    cache = _cache(store, authority, clock)

    assert cache.get().access_token == "tok-0"
    assert cache.force_refresh().access_token == "tok-refresh-1"
    assert cache.get().access_token == "tok-refresh-1"


def test_login_discards_and_consents(clock):
    store = MemoryStore(make_credential())
    authority = ScriptedAuthority()
    cache = _cache(store, authority, clock)

    cred = cache.login()

    assert store.discarded == ["client-1"]
    assert cred.access_token == "tok-consent-1"


def test_expiry_is_judged_against_the_clock():
    store = MemoryStore(make_credential(expires_in=3600))
    authority = ScriptedAuthority()
    now = [T0]
    cache = _cache(store, authority, lambda: now[0])

    cache.get()
    assert authority.refresh_calls == 0

    now[0] = T0 + timedelta(minutes=56)
    cache.get()
    assert authority.refresh_calls == 1
