"""
Streamlit Frontend for Minhas Contas

The screens a user works with every month: sign in, record incomes and
expenses, tick bills off as paid, and read the monthly report.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every write is followed by a fresh read, so what is shown is what is stored
3. Clear error messages, and the screen keeps its state when something fails
4. Nothing is shown before sign-in

Each browser session owns its identity provider; the ledger service is
shared and receives the signed-in user on every call.
"""

import asyncio
from datetime import date

import streamlit as st

from minhas_contas.audit import create_correlation_id
from minhas_contas.config import get_settings, validate_all_settings
from minhas_contas.errors import LedgerError, ValidationError
from minhas_contas.ledger import (
    category_label,
    format_currency,
    format_due_date,
    format_month,
    recurrence_label,
    sort_by_due_date,
)
from minhas_contas.models.ledger import Expense, ExpenseCategory, RecurrenceType
from minhas_contas.orchestrator import LedgerService, create_app_components
from minhas_contas.services.auth import FirebaseIdentityProvider


# Page configuration
st.set_page_config(
    page_title="Minhas Contas",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .big-number {
        font-size: 2.0em;
        font-weight: bold;
        color: #2c3e50;
    }
    .negative {
        color: #dc3545;
    }
</style>
""", unsafe_allow_html=True)

RECURRENCE_OPTIONS = {
    RecurrenceType.MONTHLY.value: "Mensal",
    RecurrenceType.PARCELED.value: "Parcelado",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components()


def money(amount) -> str:
    return format_currency(amount, get_settings().app.currency_symbol)


def get_identity() -> FirebaseIdentityProvider:
    """The identity provider of this browser session."""
    if "identity" not in st.session_state:
        _, audit_logger = get_components()
        identity = FirebaseIdentityProvider()

        def on_change(session):
            # Whatever was loaded belonged to the previous user
            st.session_state.ledger = None
            st.session_state.editing_id = None
            if session is not None:
                run_async(audit_logger.log_signed_in(session.uid, session.email))

        identity.on_auth_state_changed(on_change)
        st.session_state.identity = identity
    return st.session_state.identity


def reload_ledger(service: LedgerService) -> None:
    """Re-read both collections after any write or sign-in."""
    st.session_state.ledger, st.session_state.summary = run_async(
        service.load_summary(get_identity().current_user)
    )


def show_error(error: LedgerError) -> None:
    if isinstance(error, ValidationError) and error.issues:
        st.error("Corrija os campos abaixo:")
        for field, message in error.issues:
            st.markdown(f"- **{field}**: {message}")
    else:
        st.error(str(error))


def main():
    """Main application entry point."""
    try:
        service, audit_logger = get_components()
        identity = get_identity()
    except (LedgerError, ValueError) as e:
        # ValueError: missing or invalid environment configuration
        st.error(f"Failed to initialize: {e}")
        render_settings_page()
        return

    if identity.current_user is None:
        render_login_page(identity, audit_logger)
        return

    st.session_state.setdefault("ledger", None)
    st.session_state.setdefault("editing_id", None)
    if st.session_state.ledger is None:
        try:
            reload_ledger(service)
        except LedgerError as e:
            show_error(e)
            return

    st.sidebar.title("💰 Minhas Contas")
    st.sidebar.caption(identity.current_user.email or identity.current_user.uid)
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navegar:",
        ["📋 Painel", "📊 Relatório", "🕑 Atividade", "⚙️ Configurações"],
        index=0,
    )

    st.sidebar.markdown("---")
    if st.sidebar.button("Sair"):
        user = identity.current_user
        identity.sign_out()
        run_async(audit_logger.log_signed_out(user.uid))
        st.rerun()

    if page == "📋 Painel":
        render_dashboard_page(service)
    elif page == "📊 Relatório":
        render_report_page()
    elif page == "🕑 Atividade":
        render_activity_page(audit_logger)
    elif page == "⚙️ Configurações":
        render_settings_page()


def render_login_page(identity: FirebaseIdentityProvider, audit_logger):
    """E-mail/password sign-in, with account creation on a second tab."""
    st.title("💰 Minhas Contas")
    st.markdown("Controle suas receitas e despesas do mês.")

    sign_in_tab, sign_up_tab = st.tabs(["Entrar", "Criar conta"])

    with sign_in_tab:
        with st.form("sign_in"):
            email = st.text_input("E-mail")
            password = st.text_input("Senha", type="password")
            submitted = st.form_submit_button("Entrar")
        if submitted:
            try:
                identity.sign_in(email, password)
                st.rerun()
            except LedgerError as e:
                run_async(audit_logger.log_sign_in_failed(email, str(e)))
                st.error(str(e))

    with sign_up_tab:
        with st.form("sign_up"):
            email = st.text_input("E-mail", key="sign_up_email")
            password = st.text_input("Senha (mínimo 6 caracteres)", type="password", key="sign_up_password")
            confirm = st.text_input("Confirme a senha", type="password")
            submitted = st.form_submit_button("Criar conta")
        if submitted:
            if password != confirm:
                st.error("As senhas não conferem.")
            else:
                try:
                    identity.sign_up(email, password)
                    st.rerun()
                except LedgerError as e:
                    st.error(str(e))


def render_summary(summary):
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Receitas", money(summary.total_incomes))
    col2.metric("Despesas", money(summary.total_expenses))
    col3.metric("Pagas", money(summary.paid_expenses))
    col4.metric("A pagar", money(summary.pending_expenses))

    css = "big-number negative" if summary.is_negative else "big-number"
    st.markdown(
        f'Saldo: <span class="{css}">{money(summary.net_balance)}</span>',
        unsafe_allow_html=True,
    )


def render_dashboard_page(service: LedgerService):
    """Summary, incomes and the expense list with its actions."""
    ledger = st.session_state.ledger
    session = get_identity().current_user

    st.title(f"📋 {format_month(date.today()).capitalize()}")
    render_summary(st.session_state.summary)
    st.markdown("---")

    incomes_col, expenses_col = st.columns([1, 2])

    with incomes_col:
        st.subheader("Receitas")
        with st.form("new_income", clear_on_submit=True):
            description = st.text_input("Descrição", placeholder="Salário")
            amount = st.text_input("Valor", placeholder="0,00")
            submitted = st.form_submit_button("Adicionar receita")
        if submitted:
            try:
                run_async(service.create_income(
                    session,
                    {"description": description, "amount": amount},
                    correlation_id=create_correlation_id(),
                ))
                reload_ledger(service)
                st.rerun()
            except LedgerError as e:
                show_error(e)

        for income in ledger.incomes:
            name_col, amount_col, action_col = st.columns([3, 2, 1])
            name_col.write(income.description)
            amount_col.write(money(income.amount))
            if action_col.button("🗑️", key=f"delete_income_{income.id}"):
                try:
                    run_async(service.delete_income(session, income.id))
                    reload_ledger(service)
                    st.rerun()
                except LedgerError as e:
                    show_error(e)

    with expenses_col:
        st.subheader("Despesas")
        if not ledger.expenses:
            st.info("Nenhuma despesa cadastrada ainda.")

        for expense in sort_by_due_date(ledger.expenses):
            render_expense_row(service, expense)

        st.markdown("---")
        editing = ledger.find_expense(st.session_state.editing_id) if st.session_state.editing_id else None
        render_expense_form(service, editing)


def render_expense_row(service: LedgerService, expense: Expense):
    session = get_identity().current_user
    paid_col, info_col, amount_col, edit_col, delete_col = st.columns([1, 5, 2, 1, 1])

    label = "✅" if expense.is_paid else "⬜"
    if paid_col.button(label, key=f"toggle_{expense.id}", help="Marcar como paga/não paga"):
        try:
            run_async(service.toggle_paid(session, expense))
            reload_ledger(service)
            st.rerun()
        except LedgerError as e:
            show_error(e)

    suffix = recurrence_label(expense)
    info_col.markdown(
        f"**{expense.description}** {suffix}  \n"
        f"{category_label(expense.category)} · vence {format_due_date(expense.due_date)}"
    )
    amount_col.write(money(expense.amount))

    if edit_col.button("✏️", key=f"edit_{expense.id}"):
        st.session_state.editing_id = expense.id
        st.rerun()

    if delete_col.button("🗑️", key=f"delete_{expense.id}"):
        try:
            run_async(service.delete_expense(session, expense.id))
            if st.session_state.editing_id == expense.id:
                st.session_state.editing_id = None
            reload_ledger(service)
            st.rerun()
        except LedgerError as e:
            show_error(e)


def render_expense_form(service: LedgerService, editing: Expense = None):
    """New-expense form, or the edit form when an expense is selected."""
    session = get_identity().current_user
    categories = list(ExpenseCategory)

    st.subheader("Editar despesa" if editing else "Nova despesa")

    with st.form("expense_form", clear_on_submit=editing is None):
        description = st.text_input("Descrição", value=editing.description if editing else "")
        amount = st.text_input("Valor", value=str(editing.amount) if editing else "", placeholder="0,00")
        due_date = st.date_input("Vencimento", value=editing.due_date if editing else date.today())
        category = st.selectbox(
            "Categoria",
            options=categories,
            index=categories.index(editing.category) if editing else len(categories) - 1,
            format_func=category_label,
        )

        is_recurring = st.checkbox("Despesa recorrente", value=editing.is_recurring if editing else False)
        recurrence_keys = list(RECURRENCE_OPTIONS)
        current_type = editing.recurrence.kind if editing and editing.is_recurring else recurrence_keys[0]
        recurrence_type = st.radio(
            "Tipo de recorrência",
            options=recurrence_keys,
            index=recurrence_keys.index(current_type),
            format_func=RECURRENCE_OPTIONS.get,
            horizontal=True,
        )
        total_parcels = st.number_input(
            "Número de parcelas",
            min_value=1,
            step=1,
            value=(editing.total_parcels or 1) if editing else 1,
        )
        end_date = st.date_input("Data final (opcional)", value=editing.end_date if editing else None)

        submit_col, cancel_col = st.columns(2)
        submitted = submit_col.form_submit_button("Salvar")
        cancelled = cancel_col.form_submit_button("Cancelar") if editing else False

    if cancelled:
        st.session_state.editing_id = None
        st.rerun()

    if not submitted:
        return

    form = {
        "description": description,
        "amount": amount,
        "due_date": due_date,
        "category": category,
        "is_recurring": is_recurring,
        "recurrence_type": recurrence_type,
        "total_parcels": total_parcels,
        "end_date": end_date,
    }
    if editing and editing.current_parcel:
        # Editing keeps the plan's progress
        form["current_parcel"] = min(editing.current_parcel, int(total_parcels))

    try:
        if editing:
            run_async(service.update_expense(session, editing.id, form, correlation_id=create_correlation_id()))
            st.session_state.editing_id = None
        else:
            run_async(service.create_expense(session, form, correlation_id=create_correlation_id()))
        reload_ledger(service)
        st.rerun()
    except LedgerError as e:
        show_error(e)


def render_report_page():
    """Totals by category, incomes, expenses and the balance."""
    ledger = st.session_state.ledger
    summary = st.session_state.summary

    st.title(f"📊 Relatório de {format_month(date.today())}")
    render_summary(summary)
    st.markdown("---")

    st.subheader("Despesas por categoria")
    if summary.category_totals:
        st.table([
            {"Categoria": category_label(category), "Total": money(total)}
            for category, total in summary.category_totals.items()
        ])
    else:
        st.info("Nenhuma despesa no período.")

    st.subheader("Receitas")
    if ledger.incomes:
        st.table([
            {"Descrição": income.description, "Valor": money(income.amount)}
            for income in ledger.incomes
        ])
    else:
        st.info("Nenhuma receita cadastrada.")

    st.subheader("Despesas")
    if ledger.expenses:
        st.table([
            {
                "Descrição": f"{expense.description} {recurrence_label(expense)}".strip(),
                "Categoria": category_label(expense.category),
                "Vencimento": format_due_date(expense.due_date),
                "Valor": money(expense.amount),
                "Situação": "Paga" if expense.is_paid else "Pendente",
            }
            for expense in sort_by_due_date(ledger.expenses)
        ])
    else:
        st.info("Nenhuma despesa cadastrada.")


def render_activity_page(audit_logger):
    """The user's recent changes, newest first."""
    st.title("🕑 Atividade recente")
    session = get_identity().current_user
    try:
        events = run_async(audit_logger.recent_activity(session.uid, limit=50))
    except LedgerError as e:
        show_error(e)
        return

    if not events:
        st.info("Nenhuma atividade registrada.")
        return

    for event in events:
        icon = "⚠️" if event.severity.value in ("warning", "error", "critical") else "•"
        st.markdown(f"{icon} `{event.timestamp:%d/%m %H:%M}` {event.description}")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Configurações")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Firebase (Auth + Firestore)", "firebase"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
