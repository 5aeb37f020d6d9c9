import pytest

from almacen.core.security import create_access_token, hash_password, verify_password
from almacen.services.identity import resolve_principal
from almacen.services.storage import path_from_url, public_url


def test_password_hashing():
    hashed = hash_password("secret123")
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)


def test_resolve_principal_from_token():
    token = create_access_token(subject="7", email="ana@example.com", token_version=2)

    principal = resolve_principal(token)

    assert principal.subject == "7"
    assert principal.email == "ana@example.com"
    assert principal.verified is True
    assert principal.token_version == 2


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_resolve_principal_rejects_garbage(token):
    assert resolve_principal(token) is None


def test_storage_paths_in_simulated_mode():
    url = public_url("product-images", "products/1/a.jpg")
    assert url == "local://product-images/products/1/a.jpg"
    assert path_from_url("product-images", url) == "products/1/a.jpg"
    assert path_from_url("profile-images", url) is None
