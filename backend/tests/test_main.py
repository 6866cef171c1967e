"""Tests for application wiring and biometric encryption."""

from datetime import datetime

import pytest
from cryptography.exceptions import InvalidTag

from database.encryption import decrypt_biometrics, encrypt_biometrics, verify_key_strength
from database.models import BiometricSnapshot
from exceptions import StorageError
from main import lifespan
from services.catalog import DEFAULT_ACHIEVEMENTS


@pytest.mark.asyncio
async def test_lifespan_seeds_catalog_and_wires_services(make_completion):
    async with lifespan("sqlite:///:memory:", run_janitor=False) as services:
        assert await services.store.count_definitions() == len(DEFAULT_ACHIEVEMENTS)

        completion = await services.tracker.record_completion("user-1", make_completion())
        result = await services.achievements.check_achievements("user-1", completion)

        assert "first-session" in [d.id for d in result.awarded]
        progress = await services.progress.calculate_progress("user-1", "first-session")
        assert progress.is_completed is True


@pytest.mark.asyncio
async def test_lifespan_closes_database(make_completion):
    async with lifespan("sqlite:///:memory:", run_janitor=False) as services:
        store = services.store

    with pytest.raises(StorageError):
        await store.count_completions("user-1")


def test_test_key_is_strong():
    assert verify_key_strength() is True


def test_biometrics_encrypt_and_decrypt():
    snapshot = BiometricSnapshot(heart_rate=62, stress_level=3, timestamp=datetime(2026, 10, 12, 9, 0))

    ciphertext, iv, tag = encrypt_biometrics(snapshot)

    assert len(iv) == 12
    assert len(tag) == 16
    assert decrypt_biometrics(ciphertext, iv, tag) == snapshot


def test_tampered_biometrics_rejected():
    snapshot = BiometricSnapshot(heart_rate=62, timestamp=datetime(2026, 10, 12, 9, 0))
    ciphertext, iv, tag = encrypt_biometrics(snapshot)

    with pytest.raises(InvalidTag):
        decrypt_biometrics(bytes([ciphertext[0] ^ 1]) + ciphertext[1:], iv, tag)
