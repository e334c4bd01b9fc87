# =============================================================================
# Agents Package: Answer State Machine
# =============================================================================
# processor.py     → LangGraph graph: scope → retrieve → prompt → invoke →
#                    parse → validate citations
# answer_parser.py → raw model text → typed Answer
# =============================================================================
