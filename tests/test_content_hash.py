import hashlib

from craftdb.dedup.content_hash import Sha256Hasher, content_key, recipe_hash


def test_content_key_layout():
    assert content_key(7, 4, [(3, 1)]) == "7,4,3,1"
    assert content_key(1, 1, [(2, 2), (3, 3)]) == "1,1,2,2,3,3"


def test_recipe_hash_is_sha256_hex_of_key():
    digest = recipe_hash(1, 4, [(2, 1)])
    assert digest == hashlib.sha256(b"1,4,2,1").hexdigest()
    assert len(digest) == 64


def test_material_order_changes_hash():
    a = recipe_hash(1, 1, [(2, 2), (3, 3)])
    b = recipe_hash(1, 1, [(3, 3), (2, 2)])
    assert a != b


def test_custom_hasher_is_used():
    class Upper:
        def digest(self, text):
            return text.upper() + "!"

    assert recipe_hash(1, 2, [(3, 4)], Upper()) == "1,2,3,4!"
    assert Sha256Hasher().digest("x") == hashlib.sha256(b"x").hexdigest()
