"""
Tests for guest commenter identity binding.
"""
import pytest

from conftest import make_link
from tribute.services.guest_identity import (
    DEFAULT_DISPLAY_NAME,
    MAX_DISPLAY_NAME_LENGTH,
    GuestIdentityBinder,
    sanitize_display_name,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, DEFAULT_DISPLAY_NAME),
        ("", DEFAULT_DISPLAY_NAME),
        ("   ", DEFAULT_DISPLAY_NAME),
        ("  Aunt   Ruth ", "Aunt Ruth"),
        ("Ruth\x00\x1b[31m", "Ruth[31m"),
        ("Line\nBreak\tTab", "Line Break Tab"),
        ("\u202eevil", "evil"),
        ("José Núñez", "José Núñez"),
    ],
)
def test_sanitize_display_name(raw, expected):
    assert sanitize_display_name(raw) == expected


def test_sanitize_truncates_long_names():
    name = sanitize_display_name("x" * 500)

    assert len(name) == MAX_DISPLAY_NAME_LENGTH


@pytest.mark.asyncio
async def test_same_fingerprint_same_guest(store, codec, document):
    link = await make_link(store, document)
    binder = GuestIdentityBinder(store)
    fingerprint = codec.fingerprint("browser-1")

    first = await binder.identify(link.id, fingerprint, "Cousin Dan")
    await store.commit()
    second = await binder.identify(link.id, fingerprint, "Someone Else")
    await store.commit()

    assert first.id == second.id
    # A returning guest keeps the name they chose first
    assert second.display_name == "Cousin Dan"
    assert second.share_link_id == link.id


@pytest.mark.asyncio
async def test_guests_are_scoped_per_link(store, codec, document):
    first_link = await make_link(store, document)
    second_link = await make_link(store, document)
    binder = GuestIdentityBinder(store)
    fingerprint = codec.fingerprint("browser-1")

    on_first = await binder.identify(first_link.id, fingerprint, "Dan")
    on_second = await binder.identify(second_link.id, fingerprint, "Dan")
    await store.commit()

    assert on_first.id != on_second.id


@pytest.mark.asyncio
async def test_different_fingerprints_are_different_guests(store, codec, document):
    link = await make_link(store, document)
    binder = GuestIdentityBinder(store)

    one = await binder.identify(link.id, codec.fingerprint("browser-1"), "Dan")
    two = await binder.identify(link.id, codec.fingerprint("browser-2"), "Dan")
    await store.commit()

    assert one.id != two.id


@pytest.mark.asyncio
async def test_new_guest_without_name_gets_default(store, codec, document):
    link = await make_link(store, document)
    binder = GuestIdentityBinder(store)

    guest = await binder.identify(link.id, codec.fingerprint("browser-1"))

    assert guest.display_name == DEFAULT_DISPLAY_NAME


@pytest.mark.asyncio
async def test_empty_fingerprint_rejected(store, document):
    link = await make_link(store, document)
    binder = GuestIdentityBinder(store)

    with pytest.raises(ValueError):
        await binder.identify(link.id, "", "Dan")


@pytest.mark.asyncio
async def test_lookup_and_rename(store, codec, document):
    link = await make_link(store, document)
    binder = GuestIdentityBinder(store)
    fingerprint = codec.fingerprint("browser-1")

    assert await binder.lookup(link.id, fingerprint) is None

    guest = await binder.identify(link.id, fingerprint, "Dan")
    await store.commit()
    renamed = await binder.rename(guest, "  Daniel\x07 ")
    await store.commit()

    found = await binder.lookup(link.id, fingerprint)
    assert found.id == guest.id
    assert renamed.display_name == "Daniel"
    assert found.display_name == "Daniel"
