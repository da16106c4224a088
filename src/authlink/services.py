"""Wire stores, the two-factor manager and the login coordinator from settings."""

from __future__ import annotations

from dataclasses import dataclass

from authlink import events
from authlink.auth.enrollment import TwoFactorManager
from authlink.auth.login import LoginCoordinator
from authlink.auth.primary import PrimaryCredentialStore, StaticPrimaryStore
from authlink.config import Settings, StoreBackend
from authlink.store import CredentialStore, MemoryCredentialStore, PostgresCredentialStore


@dataclass
class Services:
    store: CredentialStore
    primary: PrimaryCredentialStore
    two_factor: TwoFactorManager
    login: LoginCoordinator


def build_store(settings: Settings) -> CredentialStore:
    if settings.store_backend == StoreBackend.POSTGRES:
        return PostgresCredentialStore()
    return MemoryCredentialStore()


def build_services(settings: Settings) -> Services:
    store = build_store(settings)
    sink = events.emit if settings.store_backend == StoreBackend.POSTGRES else events.log_only
    two_factor = TwoFactorManager(
        store,
        issuer=settings.issuer,
        secret_bytes=settings.secret_bytes,
        window=settings.totp_window,
        on_event=sink,
    )
    primary = StaticPrimaryStore.from_settings(settings)
    login = LoginCoordinator(primary, two_factor, on_event=sink)
    return Services(store=store, primary=primary, two_factor=two_factor, login=login)
