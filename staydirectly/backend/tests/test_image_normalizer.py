from app.domain.images import (
    STOCK_IMAGE_URL,
    NormalizedImage,
    fallback_images,
    images_from_property,
    normalize_images,
    optimize_image_url,
    pick_position,
    split_for_storage,
)
from app.domain.listing import RawImage


def test_cdn_url_goes_direct_and_large():
    assert (
        optimize_image_url("https://a0.muscache.com/im/pictures/abc.jpg?aki_policy=small")
        == "https://a0.muscache.com/pictures/abc.jpg?aki_policy=large"
    )
    assert (
        optimize_image_url("https://a0.muscache.com/im/pictures/abc.jpg")
        == "https://a0.muscache.com/pictures/abc.jpg?aki_policy=large"
    )
    assert (
        optimize_image_url("https://a0.muscache.com/pictures/abc.jpg?x=1")
        == "https://a0.muscache.com/pictures/abc.jpg?x=1&aki_policy=large"
    )


def test_other_hosts_pass_through():
    url = "https://cdn.example.com/im/photo.jpg?aki_policy=small"
    assert optimize_image_url(url) == url


def test_positions_follow_input_order_unless_explicit():
    raw = [
        RawImage(url="https://x.test/a.jpg"),
        RawImage(url="https://x.test/b.jpg", position=7),
        RawImage(url="https://x.test/c.jpg"),
    ]
    out = normalize_images(raw)
    assert [i.position for i in out] == [0, 7, 2]
    assert out[0].thumbnail_url == "https://x.test/a.jpg"

    # deterministic
    assert normalize_images(raw) == out


def test_order_field_counts_as_explicit_position():
    img = RawImage.from_payload({"url": "https://x.test/a.jpg", "order": 3})
    assert img.position == 3


def test_split_for_storage_orders_by_position():
    images = [
        NormalizedImage(url="b", thumbnail_url="b", position=2),
        NormalizedImage(url="a", thumbnail_url="a", position=0),
        NormalizedImage(url="c", thumbnail_url="c", position=5),
    ]
    assert split_for_storage(images) == ("a", ["b", "c"])
    assert split_for_storage([]) == ("", [])


def test_catalog_representation_has_no_gaps():
    imgs = images_from_property("a", ["b", "c"])
    assert [(i.url, i.position) for i in imgs] == [("a", 0), ("b", 1), ("c", 2)]
    assert images_from_property("", ["b"]) == []


def test_pick_position_wraps():
    imgs = images_from_property("a", ["b"])
    assert pick_position(imgs, 1).url == "b"
    picked = pick_position(imgs, 3)
    assert picked.url == "b"
    assert picked.position == 3
    assert pick_position([], 0) is None


def test_fallback_is_stock_image():
    (img,) = fallback_images(2)
    assert img.url == STOCK_IMAGE_URL
    assert img.position == 2
