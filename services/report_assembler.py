"""Report assembler — renders a ReportContext into a document.

Layout is intentionally plain: headings, a metrics block and one table of
subject rows. The assembler returns a :class:`ReportHandle`, the open output
resource the batch scheduler retains and eventually releases.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from models.scoring import ReportContext

logger = logging.getLogger(__name__)


class ReportHandle:
    """An assembled report kept open (in memory) until released."""

    def __init__(self, name: str, path: Path | None = None, document: Any = None) -> None:
        self.name = name
        self.path = path
        self.document = document
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.document = None
        self.closed = True

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"ReportHandle({self.name!r}, {state})"


class ReportAssembler(ABC):
    @abstractmethod
    async def assemble(self, context: ReportContext) -> ReportHandle:
        """Render *context* and return an open handle to the result."""


def _safe_filename(name: str) -> str:
    clean = re.sub(r'[<>:"/\\|?*]', "", name)
    clean = re.sub(r"[^\x20-\x7E]", "", clean)
    clean = re.sub(r"\s+", "_", clean.strip())
    return clean[:100] or "report"


def _rank_text(position: int | None, cohort_size: int) -> str:
    if position is None:
        return f"Sin posición ({cohort_size} estudiantes)"
    return f"{position} de {cohort_size}"


class DocxReportAssembler(ReportAssembler):
    """Write one ``.docx`` per (student, phase) with python-docx."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

    async def assemble(self, context: ReportContext) -> ReportHandle:
        from docx import Document

        doc = Document()
        doc.add_heading(f"Informe de resultados: {context.phase_label}", 0)
        doc.add_paragraph(f"Estudiante: {context.student_name}")
        doc.add_paragraph(f"Documento: {context.id_number}")
        doc.add_paragraph(f"Institución: {context.institution_name}")
        doc.add_paragraph(f"Fecha de generación: {context.generated_on.isoformat()}")

        doc.add_heading("Resumen académico", level=1)
        doc.add_paragraph(context.summary.summary or "Sin resumen.")
        for item in context.summary.strengths:
            doc.add_paragraph(item, style="List Bullet")

        metrics = context.metrics
        doc.add_heading("Puntaje global", level=1)
        doc.add_paragraph(f"Puntaje: {context.global_score} / 500")
        doc.add_paragraph(f"Percentil estimado: {context.global_percentile}")
        if context.global_rank is not None:
            doc.add_paragraph(
                "Puesto en el curso: "
                + _rank_text(context.global_rank.position, context.global_rank.cohort_size)
            )
        doc.add_paragraph(f"Avance de la fase: {metrics.phase_percentage}%")
        doc.add_paragraph(f"Tiempo promedio por pregunta: {metrics.average_time_per_question:.2f} min")
        doc.add_paragraph(f"Intentos de fraude: {metrics.fraud_attempts}")
        doc.add_paragraph(f"Respuestas por suerte: {metrics.luck_percentage}%")

        doc.add_heading("Resultados por materia", level=1)
        table = doc.add_table(rows=1, cols=4)
        header = table.rows[0].cells
        for cell, text in zip(header, ("Materia", "Puntaje", "Percentil", "Puesto")):
            cell.text = text
        for entry in context.subjects:
            row = table.add_row().cells
            row[0].text = entry.subject.value
            row[1].text = str(entry.score)
            row[2].text = str(entry.percentile)
            row[3].text = (
                _rank_text(entry.rank.position, entry.rank.cohort_size) if entry.rank else "-"
            )

        for phase, snapshots in context.previous_phases.items():
            doc.add_heading(f"Evolución: {phase.label}", level=2)
            for snap in snapshots:
                doc.add_paragraph(f"{snap.subject.value}: {snap.percentage:.0f}%", style="List Bullet")

        self.output_dir.mkdir(parents=True, exist_ok=True)
        name = f"{context.student_name} - {context.phase_label}"
        filepath = self.output_dir / (
            f"{uuid.uuid4().hex[:8]}_{_safe_filename(name)}.docx"
        )
        await asyncio.to_thread(doc.save, str(filepath))
        logger.info("Report written: %s", filepath)
        return ReportHandle(name=name, path=filepath, document=doc)
