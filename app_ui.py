import os
from typing import Optional

import httpx
import pandas as pd
import streamlit as st

from order_service.models import SHIPPING_TRANSITIONS, ShippingStatus
from shared import permissions

# --- CẤU HÌNH API ---
GATEWAY_URL = os.getenv("GATEWAY_URL", "http://localhost:8000")
PLACEHOLDER_IMAGE = "https://placehold.co/600x400?text=Restaurant"

REQUEST_COLUMNS = ["id", "name", "owner_id", "phone", "address", "created_at"]


# ==========================================
# HELPERS
# ==========================================
def auth_headers(token: Optional[str]) -> dict:
    return {"Authorization": f"Bearer {token}"} if token else {}


def format_address(address: Optional[dict]) -> str:
    if not address:
        return ""
    parts = [address.get(k) for k in ("street", "ward", "district", "city")]
    return ", ".join(p for p in parts if p)


def format_hours(open_time: Optional[str], close_time: Optional[str]) -> str:
    if not open_time or not close_time:
        return "Chưa cập nhật giờ mở cửa"
    return f"{open_time[:5]} - {close_time[:5]}"


def envelope_to_frame(envelope: dict, columns: list) -> pd.DataFrame:
    """Chuyển envelope phân trang thành DataFrame, địa chỉ lồng nhau được gộp thành chuỗi."""
    rows = []
    for item in envelope.get("items", []):
        row = {col: item.get(col) for col in columns}
        if "address" in row:
            row["address"] = format_address(row["address"])
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)


def next_shipping_statuses(status: str) -> list:
    return sorted(s.value for s in SHIPPING_TRANSITIONS[ShippingStatus(status)])


def image_url(path: Optional[str]) -> str:
    if not path:
        return PLACEHOLDER_IMAGE
    return path if path.startswith("http") else f"{GATEWAY_URL}{path}"


def api(method: str, path: str, token: Optional[str] = None, **kwargs) -> httpx.Response:
    return httpx.request(method, f"{GATEWAY_URL}{path}", headers=auth_headers(token), timeout=10, **kwargs)


# ==========================================
# CÁC TAB
# ==========================================
def render_storefront():
    st.header("😋 Hôm nay ăn gì?")
    page = st.number_input("Trang", min_value=1, value=1, step=1)
    try:
        res = api("GET", "/restaurants/preview", params={"page": page, "pageSize": 9, "approved": True})
        data = res.json() if res.status_code == 200 else {"items": [], "totalPages": 0}
    except httpx.HTTPError as e:
        st.error(f"Không kết nối được Gateway: {e}")
        return

    if not data["items"]:
        st.info("Chưa có quán nào.")
        return

    cols = st.columns(3)
    for i, r in enumerate(data["items"]):
        with cols[i % 3]:
            with st.container(border=True):
                st.image(image_url(r.get("avatar")), use_container_width=True)
                st.subheader(r["name"])
                st.caption(format_address(r.get("address")))
                st.write(format_hours(r.get("open_time"), r.get("close_time")))
    st.caption(f"Trang {data['page']}/{data['totalPages']} - {data['totalItems']} quán")


def render_request_form(token: str, user_id: str):
    st.header("🏪 Đăng ký mở quán")
    with st.form("request_restaurant"):
        name = st.text_input("Tên quán")
        description = st.text_area("Mô tả")
        street = st.text_input("Số nhà, đường")
        ward = st.text_input("Phường")
        district = st.text_input("Quận")
        city = st.text_input("Thành phố")
        avatar = st.file_uploader("Ảnh đại diện", type=["png", "jpg", "jpeg"])
        certificate = st.file_uploader("Giấy phép kinh doanh", type=["png", "jpg", "jpeg", "pdf"])

        if st.form_submit_button("Gửi yêu cầu"):
            data = {"owner_id": user_id, "name": name, "description": description,
                    "street": street, "ward": ward, "district": district, "city": city}
            files = {}
            if avatar:
                files["avatar"] = (avatar.name, avatar.getvalue(), avatar.type)
            if certificate:
                files["certificate"] = (certificate.name, certificate.getvalue(), certificate.type)
            res = api("POST", "/restaurants/requests/upload", token, data=data, files=files or None)
            if res.status_code == 200:
                st.success("Đã gửi yêu cầu!")
            else:
                st.error(f"Lỗi: {res.text}")


def render_requests_admin(token: str):
    st.header("🛡️ Yêu cầu mở quán")
    res = api("GET", "/restaurants/requests", token, params={"page": 1, "pageSize": 50})
    if res.status_code != 200:
        st.error(f"Lỗi: {res.text}")
        return

    envelope = res.json()
    st.dataframe(envelope_to_frame(envelope, REQUEST_COLUMNS), use_container_width=True)
    for r in envelope["items"]:
        c1, c2, c3 = st.columns([3, 1, 1])
        c1.write(f"**{r['name']}** ({r['owner_id']})")
        if c2.button("Duyệt", key=f"approve_{r['id']}"):
            api("PUT", f"/restaurants/{r['id']}/approve", token)
            st.rerun()
        if c3.button("Từ chối", key=f"reject_{r['id']}"):
            api("PUT", f"/restaurants/{r['id']}/reject", token)
            st.rerun()


def render_shipments(token: str, user_id: str):
    st.header("🛵 Đơn cần giao")
    res = api("GET", "/shipping", token, params={"shipper_id": user_id, "page": 1, "pageSize": 50})
    if res.status_code != 200:
        st.error(f"Lỗi: {res.text}")
        return

    for s in res.json()["items"]:
        with st.container(border=True):
            st.write(f"Đơn **#{s['order_id']}** - trạng thái: **{s['status']}**")
            choices = next_shipping_statuses(s["status"])
            cols = st.columns(max(len(choices), 1))
            for col, status in zip(cols, choices):
                if col.button(status, key=f"{s['id']}_{status}"):
                    api("PUT", f"/shipping/{s['id']}/status", token, json={"status": status})
                    st.rerun()


# ==========================================
# SIDEBAR: LOGIN / REGISTER
# ==========================================
def render_sidebar():
    with st.sidebar:
        st.title("Food Delivery 🚀")
        if st.session_state['token'] is None:
            tab_login, tab_register = st.tabs(["🔐 Login", "📝 Register"])

            with tab_login:
                login = st.text_input("Username / Email")
                pwd = st.text_input("Pass", type="password")
                if st.button("Đăng nhập"):
                    res = api("POST", "/login", json={"login": login, "password": pwd})
                    if res.status_code == 200:
                        data = res.json()
                        st.session_state['token'] = data['access_token']
                        st.session_state['user_id'] = data['id']
                        st.session_state['role'] = data['role']
                        st.session_state['permissions'] = data['permissions']
                        st.rerun()
                    else:
                        st.error(res.text)

            with tab_register:
                with st.form("reg_form"):
                    username = st.text_input("Username")
                    email = st.text_input("Email")
                    new_pass = st.text_input("Mật khẩu", type="password")
                    confirm_pass = st.text_input("Nhập lại mật khẩu", type="password")
                    if st.form_submit_button("Đăng ký ngay"):
                        if new_pass != confirm_pass:
                            st.error("Mật khẩu không khớp!")
                        else:
                            payload = {"username": username, "email": email, "password": new_pass}
                            res = api("POST", "/register", json=payload)
                            if res.status_code == 200:
                                st.success("Đăng ký thành công! Hãy chuyển sang Tab Login.")
                            else:
                                st.error(f"Lỗi: {res.text}")
        else:
            st.markdown(f"Role: **{st.session_state['role']}**")
            if st.button("Logout"):
                st.session_state['token'] = None
                st.rerun()


def main():
    st.set_page_config(page_title="Food Delivery", page_icon="🍔", layout="wide")
    for key, default in (("token", None), ("user_id", None), ("role", ""), ("permissions", [])):
        if key not in st.session_state:
            st.session_state[key] = default

    render_sidebar()

    token = st.session_state['token']
    perms = st.session_state['permissions'] if token else []
    pages = [("🏠 Cửa hàng", render_storefront, ())]
    if permissions.RESTAURANT_REQUEST in perms:
        pages.append(("🏪 Mở quán", render_request_form, (token, st.session_state['user_id'])))
    if permissions.RESTAURANT_APPROVE in perms:
        pages.append(("🛡️ Duyệt quán", render_requests_admin, (token,)))
    if permissions.SHIPPING_WRITE in perms:
        pages.append(("🛵 Giao hàng", render_shipments, (token, st.session_state['user_id'])))

    tabs = st.tabs([title for title, _, _ in pages])
    for tab, (_, render, args) in zip(tabs, pages):
        with tab:
            render(*args)


if __name__ == "__main__":
    main()
