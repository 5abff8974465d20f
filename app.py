"""
intentflow - Intent-to-Action Assistant
Streamlit Web Application

Entry point for the chat interface. Type a request in plain language and the
assistant reads files, fetches pages or runs whitelisted commands for you,
showing each executed step.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

import streamlit as st

from config import GEMINI_MODEL, GOOGLE_API_KEY, LOG_LEVEL, WORKSPACE_DIR

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

from services.chat_service import ChatResponse, ChatService  # noqa: E402

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================

st.set_page_config(
    page_title="intentflow - Intent-to-Action Assistant",
    page_icon="🧭",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .block-container {
        padding-top: 2rem;
        padding-bottom: 2rem;
    }

    /* Step list under assistant replies */
    .step-line {
        font-family: ui-monospace, SFMono-Regular, Menlo, monospace;
        font-size: 13px;
        color: #555;
        margin: 0;
    }
</style>
""", unsafe_allow_html=True)

STATUS_ICONS = {
    "running": "⏳",
    "complete": "✅",
    "error": "❌",
}

# ============================================================================
# SESSION STATE
# ============================================================================

def initialize_session_state():
    """Initialize Streamlit session state variables."""
    if "chat_service" not in st.session_state:
        st.session_state.chat_service = ChatService()

    if "messages" not in st.session_state:
        st.session_state.messages = []

    if "session_id" not in st.session_state:
        st.session_state.session_id = f"session_{uuid.uuid4().hex[:12]}"

    if "suggestions" not in st.session_state:
        st.session_state.suggestions = []


def add_message(role: str, content: str, metadata: Optional[Dict] = None):
    """Add a message to the conversation history."""
    st.session_state.messages.append({
        "role": role,
        "content": content,
        "metadata": metadata or {},
        "timestamp": time.time(),
    })


# ============================================================================
# RENDERING
# ============================================================================

def render_steps(progress: List[Dict[str, Any]]):
    """Show the final status of each executed step."""
    final: Dict[int, Dict[str, Any]] = {}
    retries: Dict[int, int] = {}
    for update in progress:
        if update["type"] == "progress":
            final[update["stepId"]] = update
        elif update["type"] == "retry":
            retries[update["stepId"]] = update["attempt"]

    for step_id, update in final.items():
        icon = STATUS_ICONS.get(update["status"], "•")
        line = f"{icon} Step {step_id}/{update['stepTotal']}: {update['action']}"
        if step_id in retries:
            line += f" (retried {retries[step_id]}x)"
        st.markdown(f"<p class='step-line'>{line}</p>", unsafe_allow_html=True)


def render_chat_message(message: Dict[str, Any]):
    """Render a single chat message."""
    with st.chat_message(message["role"]):
        metadata = message.get("metadata") or {}
        if metadata.get("progress"):
            with st.expander(f"🔧 Steps ({metadata.get('route', 'plan')})", expanded=False):
                render_steps(metadata["progress"])

        content = message["content"]
        if message["role"] == "assistant" and metadata.get("route") == "direct" and "\n" in content:
            st.code(content, language=None)
        else:
            st.markdown(content)


def render_suggestions(suggestions: List[str]):
    """Render clickable suggestion chips."""
    if not suggestions:
        return

    st.markdown("**💡 You might want to try:**")
    cols = st.columns(min(len(suggestions), 3))
    for idx, suggestion in enumerate(suggestions):
        with cols[idx % len(cols)]:
            if st.button(suggestion, key=f"suggestion_{idx}"):
                handle_user_input(suggestion)
                st.rerun()


# ============================================================================
# INPUT HANDLING
# ============================================================================

def handle_user_input(user_message: str):
    """Process user input and get the assistant's response."""
    add_message("user", user_message)

    with st.spinner("🤔 Working..."):
        try:
            response: ChatResponse = asyncio.run(
                st.session_state.chat_service.process_message(
                    user_message=user_message,
                    session_id=st.session_state.session_id,
                )
            )
            add_message("assistant", response.message, metadata=response.metadata)
            st.session_state.suggestions = response.suggestions or []

        except Exception as e:
            logger.error(f"Error processing message: {e}", exc_info=True)

            error_str = str(e).lower()
            if "api key" in error_str or "403" in error_str:
                reply = "🔑 There's an issue with the API configuration. Please check your API key."
            elif "rate limit" in error_str or "429" in error_str:
                reply = "⏳ Too many requests right now. Please wait a moment and try again."
            elif "timeout" in error_str:
                reply = "⏱️ That took too long. Please try again with a smaller request."
            else:
                reply = "😅 Something went wrong while handling that. Could you rephrase it?"

            add_message("assistant", reply, metadata={"error": True})
            st.session_state.suggestions = []


# ============================================================================
# SIDEBAR
# ============================================================================

def render_sidebar():
    """Render sidebar with status and controls."""
    with st.sidebar:
        st.markdown("### 🧭 intentflow")
        st.caption("Plain-language requests in, tool actions out.")

        st.divider()

        with st.expander("📊 System Status", expanded=False):
            st.caption(f"**Model:** {GEMINI_MODEL if GOOGLE_API_KEY else 'heuristics only'}")
            st.caption(f"**Workspace:** {WORKSPACE_DIR}")
            st.caption(f"**Messages:** {len(st.session_state.messages)}")
            st.caption(f"**Session ID:** {st.session_state.session_id[:16]}...")

        if st.button("🔄 Clear Conversation", use_container_width=True):
            st.session_state.chat_service.reset_session(st.session_state.session_id)
            st.session_state.messages = []
            st.session_state.suggestions = []
            st.rerun()

        st.divider()

        with st.expander("🚀 Quick Start Guide"):
            st.markdown("""
            **Try requests like:**
            - "list ./"
            - "read README.md"
            - "search for *.py -r"
            - "fetch https://example.com"
            - "run git status"

            Multi-step requests ("read notes.md and then summarize it") are
            planned by the model when an API key is configured.
            """)


# ============================================================================
# MAIN APP
# ============================================================================

def main():
    """Main application entry point."""
    initialize_session_state()
    render_sidebar()

    st.title("🧭 intentflow")
    st.markdown("#### Tell me what you need; I'll pick the right tool")

    for message in st.session_state.messages:
        render_chat_message(message)

    render_suggestions(st.session_state.suggestions)

    user_input = st.chat_input("Type a request here...", key="chat_input")
    if user_input:
        handle_user_input(user_input)
        st.rerun()


if __name__ == "__main__":
    main()
