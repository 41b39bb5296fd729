"""
Case Lifecycle Platform
Case status reference model and transition table.

Models:
    - CaseStatus: one row per workflow status code (read-only for the engine)

The transition table is plain data keyed by status code.  Adding a status
or an edge is a change to ``CASE_STATUS_TRANSITIONS`` only.
"""

from datetime import datetime, timezone

from app.models import db


DEFAULT_CASE_STATUS_CODE = "em_preparacao"
APPROVED_CASE_STATUS_CODE = "deferido"

CASE_STATUS_CATEGORIES = {
    "preparation", "in_progress", "review", "approved", "completed", "cancelled",
}

# Forward-only edges, except the reopen edges marked below.
CASE_STATUS_TRANSITIONS = {
    "em_preparacao":          ["em_tramite", "encaminhado_analise", "deferido",
                               "pedido_cancelamento", "pedido_arquivamento"],
    "em_tramite":             ["encaminhado_analise", "exigencia", "juntada_documento",
                               "proposta_deferimento", "deferido",
                               "pedido_cancelamento", "pedido_arquivamento"],
    "encaminhado_analise":    ["exigencia", "proposta_deferimento", "deferido",
                               "pedido_cancelamento"],
    "exigencia":              ["juntada_documento", "pedido_cancelamento", "pedido_arquivamento"],
    "juntada_documento":      ["encaminhado_analise", "em_tramite"],
    "proposta_deferimento":   ["diario_oficial", "deferido"],
    "diario_oficial":         ["publicado_dou", "deferido"],
    "deferido":               ["publicado_dou", "emissao_vitem",
                               "encaminhado_analise"],          # reopen: back under review
    "publicado_dou":          ["emissao_vitem"],
    "emissao_vitem":          ["entrada_brasil"],
    "entrada_brasil":         ["rnm"],
    "rnm":                    ["em_renovacao"],
    "em_renovacao":           ["em_tramite", "nova_solicitacao_visto"],
    "nova_solicitacao_visto": ["em_preparacao"],
    "pedido_cancelamento":    ["pedido_cancelado", "em_preparacao"],
    "pedido_arquivamento":    ["pedido_cancelado", "em_preparacao"],
    "pedido_cancelado":       ["em_preparacao"],                # reopen: start over
}


def is_valid_transition(current_code, requested_code):
    """Return True if a case may move from *current_code* to *requested_code*.

    Identical codes are always valid; unknown current codes reject everything.
    """
    if current_code == requested_code:
        return True
    return requested_code in CASE_STATUS_TRANSITIONS.get(current_code, [])


def get_next_allowed_statuses(current_code):
    """Return the status codes reachable in one step from *current_code*."""
    return list(CASE_STATUS_TRANSITIONS.get(current_code, []))


def get_common_allowed_statuses(current_codes):
    """Intersect the allowed-next sets of every code in *current_codes*.

    Used to restrict a bulk target status to one valid for all selected
    cases.  An empty input yields an empty list.  Order follows the first
    code's edge list.
    """
    codes = list(current_codes)
    if not codes:
        return []
    common = get_next_allowed_statuses(codes[0])
    for code in codes[1:]:
        allowed = set(get_next_allowed_statuses(code))
        common = [c for c in common if c in allowed]
        if not common:
            break
    return common


# ── Seed data ────────────────────────────────────────────────────────────────

DEFAULT_CASE_STATUSES = [
    {"code": "em_preparacao", "name": "Em Preparação", "name_en": "In Preparation",
     "category": "preparation", "color": "#3B82F6", "sort_order": 1},
    {"code": "em_tramite", "name": "Em Trâmite", "name_en": "In Progress",
     "category": "in_progress", "color": "#FBBF24", "sort_order": 2},
    {"code": "encaminhado_analise", "name": "Encaminhado a análise", "name_en": "Forwarded for Analysis",
     "category": "review", "color": "#F97316", "sort_order": 3},
    {"code": "exigencia", "name": "Exigência", "name_en": "Requirements Requested",
     "category": "review", "color": "#F97316", "sort_order": 4},
    {"code": "juntada_documento", "name": "Juntada de documento", "name_en": "Document Submission",
     "category": "in_progress", "color": "#FBBF24", "sort_order": 5},
    {"code": "deferido", "name": "Deferido", "name_en": "Approved",
     "category": "approved", "color": "#10B981", "sort_order": 6},
    {"code": "publicado_dou", "name": "Publicado no DOU", "name_en": "Published in Official Gazette",
     "category": "completed", "color": "#059669", "sort_order": 7},
    {"code": "emissao_vitem", "name": "Emissão do VITEM", "name_en": "VITEM Issuance",
     "category": "completed", "color": "#059669", "sort_order": 8},
    {"code": "entrada_brasil", "name": "Entrada no Brasil", "name_en": "Entry to Brazil",
     "category": "completed", "color": "#059669", "sort_order": 9},
    {"code": "rnm", "name": "Registro Nacional Migratório (RNM)", "name_en": "National Migration Registry",
     "category": "completed", "color": "#059669", "sort_order": 10},
    {"code": "em_renovacao", "name": "Em Renovação", "name_en": "Under Renewal",
     "category": "in_progress", "color": "#FBBF24", "sort_order": 11},
    {"code": "nova_solicitacao_visto", "name": "Nova Solicitação de Visto", "name_en": "New Visa Request",
     "category": "preparation", "color": "#3B82F6", "sort_order": 12},
    {"code": "pedido_cancelamento", "name": "Pedido de Cancelamento", "name_en": "Cancellation Request",
     "category": "cancelled", "color": "#EF4444", "sort_order": 13},
    {"code": "pedido_arquivamento", "name": "Pedido de Arquivamento", "name_en": "Archive Request",
     "category": "cancelled", "color": "#EF4444", "sort_order": 14},
    {"code": "pedido_cancelado", "name": "Pedido cancelado", "name_en": "Request Cancelled",
     "category": "cancelled", "color": "#EF4444", "sort_order": 15},
    {"code": "proposta_deferimento", "name": "Proposta de Deferimento", "name_en": "Proposal for Approval",
     "category": "review", "color": "#F97316", "sort_order": 16},
    {"code": "diario_oficial", "name": "Diário Oficial", "name_en": "Official Gazette",
     "category": "review", "color": "#F97316", "sort_order": 17},
]


class CaseStatus(db.Model):
    """Workflow status of an individual process (e.g. "Deferido")."""

    __tablename__ = "case_statuses"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False, comment="Portuguese display name")
    name_en = db.Column(db.String(150), nullable=True)
    description = db.Column(db.Text, default="")
    category = db.Column(
        db.String(30), nullable=True,
        comment="preparation | in_progress | review | approved | completed | cancelled",
    )
    color = db.Column(db.String(10), nullable=True)
    sort_order = db.Column(db.Integer, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "name_en": self.name_en,
            "category": self.category,
            "color": self.color,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<CaseStatus {self.code}>"


def seed_case_statuses():
    """Insert any missing default case statuses.  Caller commits.

    Returns:
        Number of rows added (0 when everything already exists).
    """
    existing = {code for (code,) in db.session.query(CaseStatus.code).all()}
    added = 0
    for row in DEFAULT_CASE_STATUSES:
        if row["code"] in existing:
            continue
        db.session.add(CaseStatus(**row))
        added += 1
    db.session.flush()
    return added
