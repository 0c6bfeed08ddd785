from __future__ import annotations

import calendar
from datetime import date, datetime

import streamlit as st

from vetclinic import config
from vetclinic.api_client import (
    ApiError,
    api_get,
    api_login,
    api_patch,
    api_post,
    jwt_email,
    jwt_is_expired,
    jwt_role,
)

st.set_page_config(page_title="Veterinary Clinic", layout="wide")


def is_logged_in() -> bool:
    token = st.session_state.get("token")
    return bool(token) and isinstance(token, str)


def do_logout() -> None:
    st.session_state.pop("token", None)
    st.session_state.pop("auth_error", None)
    st.rerun()


def require_auth(*roles: str) -> str | None:
    token = st.session_state.get("token")
    if not token:
        st.warning("Please log in from the sidebar.")
        return None
    if jwt_is_expired(token):
        st.error("Session expired. Log out from the sidebar and log in again.")
        return None
    if roles and jwt_role(token) not in roles:
        st.info("This section is not available for your role.")
        return None
    return token


def pick_day(d: date) -> None:
    st.session_state["cal_day"] = d


def show_error(e: Exception) -> None:
    if isinstance(e, PermissionError):
        st.session_state["auth_error"] = str(e)
        st.error("Session not valid. Log out and log in again.")
    elif isinstance(e, ApiError):
        st.error(e.detail)
    else:
        st.error(str(e))


# Sidebar login

with st.sidebar:
    st.header("Sign in")

    if not is_logged_in():
        u = st.text_input("Email", key="login_user")
        p = st.text_input("Password", type="password", key="login_pass")

        if st.button("Login", key="login_btn"):
            try:
                st.session_state["token"] = api_login(u.strip().lower(), p)
                st.session_state.pop("auth_error", None)
                st.rerun()
            except PermissionError:
                st.error("Invalid email or password.")
            except Exception as e:
                st.error(str(e))
    else:
        token = st.session_state["token"]
        # read from the token, no /api/me round trip on every rerun
        st.write(f"User: **{jwt_email(token)}** ({jwt_role(token)})")

        if st.session_state.get("auth_error"):
            st.error(st.session_state["auth_error"])

        if st.button("Logout", key="logout_btn"):
            do_logout()

    st.divider()
    st.caption(f"API: {config.API_BASE}")


# Public data

@st.cache_data(ttl=30)
def load_services() -> list[dict]:
    return api_get("/api/services")


@st.cache_data(ttl=30)
def load_vets() -> list[dict]:
    return api_get("/api/veterinarians")


st.title("Veterinary Clinic")

tab_book, tab_cal, tab_clin, tab_pos, tab_notif = st.tabs(
    ["Book appointment", "Calendar", "Clinical queue", "POS", "Notifications"]
)


# TAB 1 - Booking: pet -> service -> date -> slot -> confirm

with tab_book:
    st.subheader("Book an appointment")

    token = require_auth()
    if token:
        try:
            pets = api_get("/api/pets", token=token, params={"limit": 100})["data"]
            services = load_services()
            vets = load_vets()
        except Exception as e:
            show_error(e)
            pets, services, vets = [], [], []

        if not pets:
            st.info("No pets registered yet.")
        else:
            c1, c2 = st.columns(2)
            pet = c1.selectbox("Pet", pets, format_func=lambda p: f"{p['name']} ({p['species']})", key="bk_pet")
            service = c1.selectbox(
                "Service", services, format_func=lambda s: f"{s['name']} ({s['duration_minutes']} min)", key="bk_svc"
            )
            vet = c2.selectbox(
                "Veterinarian (optional)",
                [None] + vets,
                format_func=lambda v: "Any available" if v is None else f"Dr. {v['first_name']} {v['last_name']}",
                key="bk_vet",
            )
            day = c2.date_input("Date", value=date.today(), min_value=date.today(), key="bk_day")

            params = {"date": day.isoformat(), "service": service["code"]}
            if vet:
                params["veterinarian_id"] = vet["id"]
            try:
                slots = api_get("/api/appointments/slots", params=params)["slots"]
            except Exception as e:
                show_error(e)
                slots = []

            if not slots:
                st.warning("No available time slots for this date.")
            else:
                slot = st.radio("Available times", slots, horizontal=True, key="bk_slot")
                reason = st.text_area("Reason for visit (optional)", key="bk_reason")
                if st.button("Confirm booking", key="bk_submit"):
                    payload = {
                        "pet_id": pet["id"],
                        "service_code": service["code"],
                        "scheduled_start": f"{day.isoformat()}T{slot}:00",
                        "veterinarian_id": vet["id"] if vet else None,
                        "reason_for_visit": reason or None,
                    }
                    try:
                        a = api_post("/api/appointments", payload, token=token)
                        st.success(f"Booked {a['appointment_number']} for {a['scheduled_start']}.")
                    except Exception as e:
                        show_error(e)

        st.divider()
        st.write("My appointments")
        try:
            for a in api_get("/api/appointments", token=token):
                st.write(
                    f"- **{a['scheduled_start'][:16].replace('T', ' ')}** | {a['pet']['name']} | "
                    f"{a['appointment_type']} | {a['appointment_status']}"
                )
        except Exception as e:
            show_error(e)


# TAB 2 - Calendar (staff)

with tab_cal:
    st.subheader("Appointment calendar")

    token = require_auth("admin", "veterinarian")
    if token:
        today = date.today()
        c1, c2 = st.columns(2)
        year = c1.number_input("Year", value=today.year, step=1, key="cal_year")
        month = c2.selectbox("Month", list(range(1, 13)), index=today.month - 1, key="cal_month")

        try:
            stats = api_get("/api/appointments/stats", token=token)
            m1, m2, m3 = st.columns(3)
            m1.metric("Today", stats["appointments_today"])
            m2.metric("Next 7 days", stats["upcoming_7_days"])
            m3.metric("Monthly capacity", f"{stats['capacity_percent']}%")

            cal = api_get("/api/appointments/calendar", token=token, params={"year": int(year), "month": month})
            counts = {d["date"]: d for d in cal["days"]}
            for week in calendar.Calendar().monthdatescalendar(int(year), month):
                cols = st.columns(7)
                for col, d in zip(cols, week):
                    if d.month != month:
                        continue
                    info = counts.get(d.isoformat())
                    label = f"{d.day}" + (f" | {info['count']} {info['level']}" if info else "")
                    col.button(label, key=f"cal_{d.isoformat()}", on_click=pick_day, args=(d,))
        except Exception as e:
            show_error(e)

        day = st.session_state.get("cal_day", today)
        st.write(f"Schedule for **{day.isoformat()}**")
        try:
            sched = api_get("/api/appointments/daily", token=token, params={"date": day.isoformat()})
            st.caption(f"Open slots: {', '.join(sched['open_slots']) or '-'}")
            for a in sched["appointments"]:
                st.write(
                    f"- **{a['scheduled_start'][11:16]}-{a['scheduled_end'][11:16]}** | {a['pet']['name']} | "
                    f"{a['client']['first_name']} {a['client']['last_name']} | {a['appointment_status']}"
                )
        except Exception as e:
            show_error(e)


# TAB 3 - Triage / consultation (vet)

with tab_clin:
    st.subheader("Clinical queue")

    token = require_auth("veterinarian")
    if token:
        try:
            triage = api_get("/api/triage", token=token)
            consult = api_get("/api/consultations", token=token)
        except Exception as e:
            show_error(e)
            triage, consult = [], []

        st.write(f"Waiting for triage: {len(triage)}")
        for row in triage:
            with st.expander(f"{row['pet_name']} ({row['species']}) | {row['reason_for_visit']}"):
                c1, c2 = st.columns(2)
                w = c1.number_input("Weight (kg)", min_value=0.0, step=0.1, key=f"tw_{row['appointment_id']}")
                t = c2.number_input("Temperature (C)", min_value=0.0, step=0.1, key=f"tt_{row['appointment_id']}")
                if st.button("Save triage", key=f"ts_{row['appointment_id']}"):
                    try:
                        api_post("/api/triage", {"appointment_id": row["appointment_id"], "weight": w, "temperature": t}, token=token)
                        st.success("Triage saved.")
                    except Exception as e:
                        show_error(e)

        st.divider()
        st.write(f"Ready for consultation: {len(consult)}")
        for row in consult:
            with st.expander(f"{row['pet_name']} | {row['triage']['weight']} kg, {row['triage']['temperature']} C"):
                s_ = st.text_area("Subjective", key=f"cs_{row['appointment_id']}")
                o_ = st.text_area("Objective", key=f"co_{row['appointment_id']}")
                a_ = st.text_area("Assessment", key=f"ca_{row['appointment_id']}")
                p_ = st.text_area("Plan", key=f"cp_{row['appointment_id']}")
                if st.button("Complete consultation", key=f"cc_{row['appointment_id']}"):
                    payload = {"appointment_id": row["appointment_id"], "subjective": s_, "objective": o_,
                               "assessment": a_, "plan": p_}
                    try:
                        rec = api_post("/api/consultations", payload, token=token)
                        st.success(f"Medical record {rec['record_number']} saved.")
                    except Exception as e:
                        show_error(e)


# TAB 4 - POS (admin)

with tab_pos:
    st.subheader("Point of sale")

    token = require_auth("admin")
    if token:
        cart = st.session_state.setdefault("cart", [])
        try:
            products = api_get("/api/products")
            services = load_services()
        except Exception as e:
            show_error(e)
            products, services = [], []

        c1, c2, c3 = st.columns([3, 1, 1])
        catalog = [("service", s["id"], s["name"], s["price"]) for s in services] + [
            ("product", p["id"], f"{p['product_name']} ({p['stock_quantity']} in stock)", p["price"]) for p in products
        ]
        item = c1.selectbox("Item", catalog, format_func=lambda i: f"{i[2]} | {i[3]}", key="pos_item")
        qty = c2.number_input("Qty", min_value=1, value=1, step=1, key="pos_qty")
        if c3.button("Add", key="pos_add") and item:
            cart.append({"item_type": item[0], "item_id": str(item[1]), "quantity": int(qty), "label": item[2]})

        for line in cart:
            st.write(f"- {line['quantity']} x {line['label']}")

        c1, c2, c3 = st.columns(3)
        method = c1.selectbox("Payment", ["cash", "gcash", "credit_card", "debit_card"], key="pos_method")
        discount = c2.number_input("Discount %", min_value=0.0, max_value=100.0, key="pos_disc")
        tendered = c3.number_input("Cash tendered", min_value=0.0, key="pos_cash")
        customer = st.text_input("Walk-in customer name (optional)", key="pos_customer")

        if st.button("Checkout", key="pos_checkout", disabled=not cart):
            payload = {
                "items": [{k: v for k, v in ln.items() if k != "label"} for ln in cart],
                "payment_method": method,
                "discount_percent": discount,
                "cash_tendered": tendered if method == "cash" else None,
                "walk_in_customer_name": customer or None,
            }
            try:
                res = api_post("/api/billing/checkout", payload, token=token)
                inv = res["invoice"]
                st.success(f"Invoice {inv['invoice_number']} | total {inv['total_amount']}")
                if res["payment"].get("change_due"):
                    st.info(f"Change: {res['payment']['change_due']}")
                st.session_state["cart"] = []
            except Exception as e:
                show_error(e)


# TAB 5 - Notifications

with tab_notif:
    st.subheader("Notifications")

    token = require_auth()
    if token:
        try:
            res = api_get("/api/notifications", token=token)
            st.caption(f"Unread: {res['unread']}")
            for n in res["notifications"]:
                sent = datetime.fromisoformat(n["sent_at"]).strftime("%b %d, %H:%M")
                c1, c2 = st.columns([5, 1])
                c1.write(f"**{n['subject'] or n['notification_type']}** | {sent} - {n['content']}")
                if n["delivery_status"] != "delivered" and c2.button("Mark read", key=f"nr_{n['id']}"):
                    api_patch(f"/api/notifications/{n['id']}", {}, token=token)
                    st.rerun()
        except Exception as e:
            show_error(e)
