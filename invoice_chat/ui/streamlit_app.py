"""
Streamlit UI -- Invoice Chat.

Features:
  - Chat history held by one ConversationController in session state
  - Sidebar with model / database connection status and target table
  - Model selector (recreates the model session)
  - Recent questions, click to replay as a new turn
  - Generated SQL, results table with CSV download, execute timing
  - Manual "Ejecutar Query" button when auto-execute is off
  - 1-5 star ratings on answers
"""
import asyncio

import pandas as pd
import streamlit as st

from invoice_chat.assistant.controller import ConversationController
from invoice_chat.assistant.exchange import Exchange, Failed, Generated, LinkState, Pending, Role
from invoice_chat.assistant.gateway_client import GatewayClient
from invoice_chat.assistant.schema import load_table_schema
from invoice_chat.core.config import get_settings

settings = get_settings()
schema = load_table_schema()

st.set_page_config(
    page_title="Invoice Chat",
    page_icon="receipt",
    layout="wide",
    initial_sidebar_state="expanded",
)

_STATUS_BADGES = {
    LinkState.UNINITIALIZED: "⚪",
    LinkState.CONNECTING: "🟡",
    LinkState.CONNECTED: "🟢",
    LinkState.ERROR: "🔴",
}


if "controller" not in st.session_state:
    controller = ConversationController(GatewayClient())
    asyncio.run(controller.initialize())
    st.session_state.controller = controller

controller: ConversationController = st.session_state.controller


def _status_line(label: str, status) -> None:
    st.markdown(f"{_STATUS_BADGES[status.state]} **{label}** · {status.state.value}")
    if status.detail:
        st.caption(status.detail)


with st.sidebar:
    st.title("⌗ Invoice Chat")
    st.caption("SQL Generator")

    st.subheader("Conexión Activa")
    _status_line("Modelo", controller.model_status)
    _status_line("PostgreSQL", controller.db_status)
    st.code(
        f"Host:  {settings.postgres_host}\n"
        f"DB:    {settings.postgres_db}\n"
        f"User:  {settings.postgres_user}\n"
        f"Table: {schema.table}",
        language=None,
    )
    if st.button("Reintentar conexión", use_container_width=True):
        asyncio.run(controller.initialize())
        st.rerun()

    st.divider()

    choices = settings.model_choices
    current = choices.index(controller.model_id) if controller.model_id in choices else 0
    selected = st.selectbox("Modelo", choices, index=current, disabled=controller.busy)
    if selected != controller.model_id:
        controller.select_model(selected)
        st.rerun()

    st.divider()

    st.subheader("Historial Reciente")
    recent = controller.recent_questions(5)
    if not recent:
        st.caption("_Sin historial._")
    for ex in recent:
        if st.button(ex.text, key=f"replay_{ex.id}", use_container_width=True, disabled=controller.busy):
            with st.spinner("Repitiendo consulta..."):
                asyncio.run(controller.replay(ex.id))
            st.rerun()

    st.divider()
    st.caption(f"Policy: {settings.sql_policy} · auto-execute: {'on' if controller.auto_execute else 'off'}")


st.title("Editor SQL")
st.markdown(f"Pregunta en lenguaje natural sobre la tabla `{schema.table}`.")

with st.expander("Ejemplos", expanded=False):
    cols = st.columns(2)
    for i, example in enumerate(schema.examples):
        if cols[i % 2].button(example, key=f"ex_{i}", use_container_width=True):
            st.session_state.prefill = example


def _render_results(ex: Exchange) -> None:
    result = ex.result_set
    st.success(f"✅ Success ({ex.elapsed_ms / 1000:.2f}s) · {len(result.rows)} filas")
    if result.is_empty:
        st.info("La consulta no devolvió filas.")
        return
    df = pd.DataFrame(result.rows, columns=list(dict.fromkeys(result.columns)))
    st.dataframe(df, use_container_width=True)
    st.download_button(
        "Download CSV",
        df.to_csv(index=False),
        file_name="invoice_results.csv",
        mime="text/csv",
        key=f"csv_{ex.id}",
    )


def _render_model(ex: Exchange) -> None:
    if ex.state is None:
        st.markdown(ex.text)
        return

    if isinstance(ex.state, Pending):
        st.markdown("_Generando consulta…_")
        return

    if ex.text:
        st.markdown(ex.text)
    if ex.generated_sql:
        st.code(ex.generated_sql, language="sql")

    if isinstance(ex.state, Generated):
        if ex.status == "thinking":
            st.markdown("_Ejecutando…_")
        elif st.button("▶ Ejecutar Query", key=f"run_{ex.id}", disabled=controller.busy):
            asyncio.run(controller.execute(ex.id))
            st.rerun()
    elif isinstance(ex.state, Failed):
        if ex.state.kind == "policy":
            st.warning(f"🔒 {ex.error_message}")
        elif ex.generated_sql:
            st.error(f"❌ {ex.error_message}")
        else:
            st.error(ex.error_message)
            if ex.state.detail:
                with st.expander("Detalle técnico", expanded=False):
                    st.code(ex.state.detail, language=None)
    elif ex.result_set is not None:
        _render_results(ex)

    if controller.enable_ratings:
        stars = st.feedback("stars", key=f"rate_{ex.id}")
        if stars is not None and stars + 1 != ex.rating:
            controller.rate(ex.id, stars + 1)


for ex in controller.exchanges:
    with st.chat_message("user" if ex.role is Role.USER else "assistant"):
        if ex.role is Role.USER:
            st.markdown(ex.text)
        else:
            _render_model(ex)


prefill = st.session_state.pop("prefill", None)
question = st.chat_input(
    "Escribe tu requerimiento (ej: 'Dame el total de ventas de la última semana')...",
    disabled=controller.busy or controller.session is None,
) or prefill

if question:
    with st.spinner("Generando y ejecutando..."):
        asyncio.run(controller.submit(question))
    st.rerun()
