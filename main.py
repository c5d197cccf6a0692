# main.py

"""Streamlit web UI for the clinical PHI masking pipeline.

Provides a simple interface to mask a transcript, inspect the detected
entities, and restore the original text from the masked output.
"""

import streamlit as st
import logging

from phimask.core.exceptions import PhiMaskError
from phimask.logging_config import configure_logging
from phimask.service.config import settings
from phimask.service.pipeline import mask_phi, unmask_phi

configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


def _entity_rows(entities):
    return [
        {
            "token": e.token,
            "type": e.type,
            "begin": e.begin_offset,
            "end": e.end_offset,
            "score": round(e.score, 3),
        }
        for e in entities
    ]


def main():
    """Run the Streamlit application UI.

    Masking results are kept in the session so the same entity list can be
    used to unmask the (possibly edited) masked text.
    """
    st.set_page_config(layout="wide", page_title="Clinical PHI Masking", page_icon="🛡️")

    st.title("Clinical PHI Masking")
    st.markdown(
        "Replace Protected Health Information in clinical transcripts with "
        "reversible `{{TYPE_ID}}` tokens."
    )
    st.markdown("---")

    col1, col2 = st.columns(2)

    with col1:
        st.subheader("Input Transcript")
        text_input = st.text_area(
            "Source Transcript",
            height=400,
            placeholder="Paste clinical transcript text here...",
        )
        threshold = st.slider(
            "Mask threshold", min_value=0.0, max_value=1.0, value=settings.mask_threshold
        )

        if st.button("Mask PHI", type="primary"):
            if not text_input or not text_input.strip():
                st.warning("Please enter text to process.")
                logger.warning("Masking attempted with empty input")
            else:
                try:
                    with st.spinner("Detecting PHI..."):
                        st.session_state["masking"] = mask_phi(text_input, threshold)
                except PhiMaskError as e:
                    st.error(f"Masking failed: {type(e).__name__}")
                    logger.error(
                        "Masking request failed",
                        extra={"error_type": type(e).__name__, "text_length": len(text_input)},
                    )

    with col2:
        st.subheader("Masked Output")
        result = st.session_state.get("masking")

        if result is not None:
            masked_text = st.text_area("Masked Transcript", value=result.masked_text, height=400)
            st.success(
                f"Masked {len(result.masked_entities)} entities across "
                f"{result.chunk_count} chunk(s); skipped {len(result.skipped_entities)}."
            )

            if st.button("Unmask"):
                restored = unmask_phi(masked_text, result.masked_entities)
                st.text_area("Restored Transcript", value=restored.unmasked_text, height=200)
                if restored.invalid_tokens:
                    st.warning(f"Invalid tokens: {', '.join(restored.invalid_tokens)}")
                if restored.unresolved_tokens:
                    st.warning(f"Unresolved tokens: {', '.join(restored.unresolved_tokens)}")

            with st.expander("Masked entities"):
                st.dataframe(_entity_rows(result.masked_entities))
            with st.expander("Skipped entities (below threshold)"):
                st.dataframe(_entity_rows(result.skipped_entities))

    with st.sidebar:
        st.header("About")
        st.markdown("""
        Detected PHI categories:

        - **Names** and **professions**
        - **Dates** and **ages**
        - **Identifiers** (MRN, SSN, licence numbers)
        - **Contact details** (phone/fax, email, URL, address)

        Entities below the mask threshold are reported but left in the text.
        """)

        st.header("Status")
        st.info(f"Detector backend: {settings.detector_backend}")


if __name__ == "__main__":
    main()
