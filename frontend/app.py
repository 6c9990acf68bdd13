import streamlit as st
import requests
from decimal import Decimal, InvalidOperation
import os

# ── Config ────────────────────────────────────────────────────────────────────
API_BASE = os.getenv("API_BASE_URL", "http://localhost:8000")
COOKIE_NAME = os.getenv("COOKIE_NAME", "token")

CATEGORIES = ["FOOD", "TRAVEL", "RENT", "UTILITIES", "OTHER"]
SORT_OPTIONS = {
    "Newest First": ("created_at", "desc"),
    "Oldest First": ("created_at", "asc"),
    "Amount: High to Low": ("amount", "desc"),
    "Amount: Low to High": ("amount", "asc"),
    "Title A-Z": ("title", "asc"),
    "Recurring First": ("is_recurring", "desc"),
}

st.set_page_config(
    page_title="Spendbook",
    page_icon="💸",
    layout="centered",
)

# ── Helpers ───────────────────────────────────────────────────────────────────

def _error_detail(resp: requests.Response) -> str:
    try:
        return resp.json().get("error", resp.text)
    except ValueError:
        return resp.text


def _cookies() -> dict:
    token = st.session_state.get("token")
    return {COOKIE_NAME: token} if token else {}


def call_api(method: str, path: str, **kwargs) -> tuple[bool, str, dict | list | None]:
    """Send one request to the API. Returns (success, message, data)."""
    try:
        resp = requests.request(
            method, f"{API_BASE}{path}", cookies=_cookies(), timeout=10, **kwargs
        )
    except requests.exceptions.ConnectionError:
        return False, "Could not connect to the API. Please try again.", None
    except requests.exceptions.Timeout:
        return False, "Request timed out. Please refresh before retrying.", None

    if resp.status_code == 401 and path not in ("/auth/login", "/auth/register"):
        # Session expired or was never valid
        st.session_state.token = None
        st.session_state.user = None
    if resp.ok:
        return True, "", resp.json()
    return False, f"API error {resp.status_code}: {_error_detail(resp)}", None


def login(username: str, password: str) -> tuple[bool, str]:
    try:
        resp = requests.post(
            f"{API_BASE}/auth/login",
            json={"username": username, "password": password},
            timeout=10,
        )
    except requests.exceptions.RequestException:
        return False, "Could not connect to the API."
    if resp.status_code != 200:
        return False, _error_detail(resp)
    st.session_state.token = resp.cookies.get(COOKIE_NAME)
    st.session_state.user = resp.json()
    return True, ""


def fetch_expenses(category: str, min_amount, max_amount, sort_by: str, order: str):
    """GET /expenses. Returns (success, message, data)."""
    params = {"sortBy": sort_by, "order": order}
    if category and category != "ALL":
        params["category"] = category
    if min_amount is not None:
        params["minAmount"] = str(min_amount)
    if max_amount is not None:
        params["maxAmount"] = str(max_amount)
    return call_api("GET", "/expenses", params=params)


def parse_decimal(raw: str):
    raw = (raw or "").strip()
    if not raw:
        return None
    return Decimal(raw)


def format_money(amount) -> str:
    try:
        return f"₹{Decimal(str(amount)):,.2f}"
    except (InvalidOperation, TypeError):
        return f"₹{amount}"


# ── Session state init ─────────────────────────────────────────────────────────
if "token" not in st.session_state:
    st.session_state.token = None

if "user" not in st.session_state:
    st.session_state.user = None

if "submit_result" not in st.session_state:
    st.session_state.submit_result = None  # (success: bool, message: str)

if "editing" not in st.session_state:
    st.session_state.editing = None  # expense dict being edited, or None when adding

# ── Page ───────────────────────────────────────────────────────────────────────
st.title("💸 Spendbook")
st.caption("Track your personal expenses. All amounts in ₹.")

# ── Section 0: Account ─────────────────────────────────────────────────────────
if not st.session_state.token:
    tab_login, tab_register = st.tabs(["Log in", "Register"])

    with tab_login:
        with st.form("login_form"):
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Log in", type="primary", use_container_width=True):
                ok, msg = login(username.strip(), password)
                if ok:
                    st.rerun()
                else:
                    st.error(msg)

    with tab_register:
        with st.form("register_form"):
            new_username = st.text_input("Username", key="reg_username")
            new_password = st.text_input("Password", type="password", key="reg_password")
            if st.form_submit_button("Create account", use_container_width=True):
                ok, msg, _ = call_api(
                    "POST",
                    "/auth/register",
                    json={"username": new_username.strip(), "password": new_password},
                )
                if ok:
                    st.success("Account created. You can log in now.")
                else:
                    st.error(msg)
    st.stop()

with st.sidebar:
    st.markdown(f"Signed in as **{st.session_state.user['username']}**")
    if st.button("Log out"):
        call_api("POST", "/auth/logout")
        st.session_state.token = None
        st.session_state.user = None
        st.session_state.editing = None
        st.rerun()

st.divider()

# ── Section 1: Add / Edit Expense ──────────────────────────────────────────────
editing = st.session_state.editing
form_id = editing["id"] if editing else "new"
heading = f"✏️ Edit “{editing['title']}”" if editing else "➕ Add New Expense"

with st.expander(heading, expanded=True):
    # A fresh form key per target so the widgets pick up the new defaults
    with st.form(f"expense_form_{form_id}", clear_on_submit=False):
        title = st.text_input(
            "Title *", value=editing["title"] if editing else "",
            max_chars=200, placeholder="e.g. Groceries",
        )

        col1, col2 = st.columns(2)
        with col1:
            amount_str = st.text_input(
                "Unit amount (₹) *", value=str(editing["amount"]) if editing else "",
                placeholder="e.g. 499.00",
            )
            quantity = st.number_input(
                "Quantity", min_value=1, value=int(editing["quantity"]) if editing else 1, step=1,
            )
            is_recurring = st.checkbox("Recurring", value=bool(editing["is_recurring"]) if editing else False)
        with col2:
            category = st.selectbox(
                "Category *", options=CATEGORIES,
                index=CATEGORIES.index(editing["category"]) if editing else 0,
            )
            discount = st.number_input(
                "Discount %", min_value=0.0, max_value=100.0,
                value=float(editing["discount"]) if editing else 0.0, step=0.5,
            )
            tax_percent = st.number_input(
                "Tax %", min_value=0.0, max_value=100.0,
                value=float(editing["tax_percent"]) if editing else 0.0, step=0.5,
            )

        col_save, col_cancel = st.columns([3, 1])
        with col_save:
            submitted = st.form_submit_button(
                "Update Expense" if editing else "Save Expense",
                type="primary", use_container_width=True,
            )
        with col_cancel:
            cancelled = st.form_submit_button("Cancel", use_container_width=True, disabled=not editing)

        if cancelled:
            st.session_state.editing = None
            st.rerun()

        if submitted:
            # ── Client-side validation ──
            errors = []
            try:
                amount_val = Decimal(amount_str.strip())
                if amount_val < 0:
                    errors.append("Amount cannot be negative.")
            except (InvalidOperation, AttributeError):
                errors.append("Amount must be a valid number (e.g. 250 or 99.99).")

            if not title.strip():
                errors.append("Title is required.")

            if errors:
                for err in errors:
                    st.error(err)
            else:
                payload = {
                    "title": title.strip(),
                    "category": category,
                    "amount": str(amount_val),
                    "quantity": int(quantity),
                    "is_recurring": is_recurring,
                    "discount": str(Decimal(str(discount))),
                    "tax_percent": str(Decimal(str(tax_percent))),
                }
                with st.spinner("Saving..."):
                    if editing:
                        success, message, _ = call_api("PUT", f"/expenses/{editing['id']}", json=payload)
                    else:
                        success, message, _ = call_api("POST", "/expenses", json=payload)
                done = "Expense updated!" if editing else "Expense saved successfully!"
                st.session_state.submit_result = (success, done if success else message)
                if success:
                    st.session_state.editing = None
                    st.rerun()

    # Show result outside the form so it persists after rerun
    if st.session_state.submit_result is not None:
        ok, msg = st.session_state.submit_result
        if ok:
            st.success(msg)
        else:
            st.error(msg)
        st.session_state.submit_result = None

st.divider()

# ── Section 2: Summary by Category ─────────────────────────────────────────────
ok, err_msg, summary = call_api("GET", "/expenses/summary")
if ok and summary and summary["count"] > 0:
    st.metric(
        label=f"Total spent ({summary['count']} expense{'s' if summary['count'] != 1 else ''})",
        value=format_money(summary["total"]),
    )
    with st.expander("📊 Summary by Category"):
        st.table([
            {"Category": row["category"], "Expenses": row["count"], "Total": format_money(row["total"])}
            for row in summary["by_category"]
        ])
elif not ok:
    st.error(f"⚠️ {err_msg}")

# ── Section 3: Filters ─────────────────────────────────────────────────────────
st.subheader("📋 My Expenses")

col_f1, col_f2 = st.columns([1, 1])
with col_f1:
    selected_category = st.selectbox("Filter by Category", options=["ALL"] + CATEGORIES)
with col_f2:
    sort_label = st.selectbox("Sort", options=list(SORT_OPTIONS))

col_f3, col_f4 = st.columns(2)
with col_f3:
    min_str = st.text_input("Min amount", placeholder="any")
with col_f4:
    max_str = st.text_input("Max amount", placeholder="any")

try:
    min_amount, max_amount = parse_decimal(min_str), parse_decimal(max_str)
except InvalidOperation:
    st.error("Amount bounds must be numbers.")
    st.stop()

sort_by, order = SORT_OPTIONS[sort_label]

# ── Section 4: Expense List ────────────────────────────────────────────────────
with st.spinner("Loading expenses..."):
    ok, err_msg, expenses = fetch_expenses(selected_category, min_amount, max_amount, sort_by, order)

if not ok:
    st.error(f"⚠️ {err_msg}")
elif not expenses:
    st.info("No expenses found for the selected filter.")
else:
    for exp in expenses:
        with st.container(border=True):
            c1, c2, c3 = st.columns([2, 1, 1])
            with c1:
                st.markdown(f"**{exp['title']}**")
                st.caption(f"{exp['category']}{' · recurring' if exp['is_recurring'] else ''}")
            with c2:
                st.markdown(f"**{format_money(exp['effective_amount'])}**")
                st.caption(
                    f"{exp['quantity']} × {format_money(exp['amount'])}, "
                    f"-{exp['discount']}% +{exp['tax_percent']}% tax"
                )
            with c3:
                st.caption(exp["created_at"][:10])
                if st.button("Edit", key=f"edit_{exp['id']}"):
                    st.session_state.editing = exp
                    st.rerun()
                if st.button("Delete", key=f"del_{exp['id']}"):
                    deleted, msg, _ = call_api("DELETE", f"/expenses/{exp['id']}")
                    if deleted:
                        if st.session_state.editing and st.session_state.editing["id"] == exp["id"]:
                            st.session_state.editing = None
                        st.rerun()
                    else:
                        st.error(msg)
