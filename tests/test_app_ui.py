import app_ui


def test_auth_headers():
    assert app_ui.auth_headers(None) == {}
    assert app_ui.auth_headers("abc") == {"Authorization": "Bearer abc"}


def test_format_helpers():
    assert app_ui.format_address({"street": "1 Le Loi", "city": "HCM"}) == "1 Le Loi, HCM"
    assert app_ui.format_address(None) == ""
    assert app_ui.format_hours("07:00:00", "22:30:00") == "07:00 - 22:30"
    assert app_ui.format_hours(None, "22:30:00") == "Chưa cập nhật giờ mở cửa"


def test_image_url():
    assert app_ui.image_url(None) == app_ui.PLACEHOLDER_IMAGE
    assert app_ui.image_url("https://cdn/x.png") == "https://cdn/x.png"
    assert app_ui.image_url("/static/a.png") == f"{app_ui.GATEWAY_URL}/static/a.png"


def test_envelope_to_frame():
    envelope = {
        "items": [{"id": "r1", "name": "Pho", "owner_id": "u1", "address": {"street": "1 Le Loi"}, "extra": 1}],
        "totalItems": 1,
    }

    frame = app_ui.envelope_to_frame(envelope, app_ui.REQUEST_COLUMNS)

    assert list(frame.columns) == app_ui.REQUEST_COLUMNS
    assert frame.loc[0, "address"] == "1 Le Loi"
    assert app_ui.envelope_to_frame({"items": []}, ["id"]).empty


def test_next_shipping_statuses():
    assert app_ui.next_shipping_statuses("PENDING") == ["CANCELLED", "RETURNED", "SHIPPING"]
    assert app_ui.next_shipping_statuses("SHIPPING") == ["CANCELLED", "DELIVERED", "RETURNED"]
    assert app_ui.next_shipping_statuses("DELIVERED") == []
