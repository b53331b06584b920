import base64
import binascii
import io
import logging
from typing import List, Optional, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from modules.submissions.schemas.submission_schemas import (
    DocumentType, DogInfo, MembershipApplication, Submission
)

logger = logging.getLogger(__name__)

TITLES = {
    DocumentType.MEMBERSHIP_APPLICATION: "Modulo di iscrizione",
    DocumentType.RENEWAL: "Rinnovo iscrizione",
}

LEFT = 20 * mm
LINE = 7 * mm


class PdfRenderError(Exception):
    """Raised when a submission cannot be rendered to PDF"""
    pass


def decode_signature(data_url: str) -> bytes:
    try:
        _, payload = data_url.split(",", 1)
        return base64.b64decode(payload, validate=True)
    except (ValueError, binascii.Error) as e:
        raise PdfRenderError("Signature image is not valid base64") from e


class PdfService:
    """
    Renders form submissions with ReportLab.

    The canvas runs in invariant mode, so the same submission always yields
    the same bytes.
    """

    def __init__(self, association_name: str):
        self.association_name = association_name

    def render(self, submission: Submission, document_type: DocumentType) -> bytes:
        buffer = io.BytesIO()
        try:
            pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
            pdf.setTitle(f"{TITLES[document_type]} - {submission.full_name}")
            pdf.setAuthor(self.association_name)

            _, height = A4
            y = height - 25 * mm

            pdf.setFont("Helvetica-Bold", 16)
            pdf.drawString(LEFT, y, self.association_name)
            y -= LINE * 1.5
            pdf.setFont("Helvetica-Bold", 13)
            pdf.drawString(LEFT, y, TITLES[document_type])
            y -= LINE * 1.5

            y = self._section(pdf, y, "Dati personali", self._personal_rows(submission))

            if isinstance(submission, MembershipApplication):
                for label, dog in (("Primo cane", submission.first_dog),
                                   ("Secondo cane", submission.second_dog)):
                    if dog is not None:
                        y = self._section(pdf, y, label, self._dog_rows(dog))

            y = self._section(pdf, y, "Consensi", [
                ("Privacy", self._yes_no(submission.consent_privacy)),
                ("Regolamento", self._yes_no(submission.consent_rules)),
                ("Social", self._yes_no(submission.consent_social)),
                ("Newsletter", self._yes_no(submission.consent_newsletter)),
            ])

            self._signature_block(pdf, y, submission.signature_data_url)

            pdf.showPage()
            pdf.save()
        except PdfRenderError:
            raise
        except Exception as e:
            raise PdfRenderError(f"Could not render PDF: {e}") from e

        logger.debug("PDF rendered for %s", document_type.value)
        return buffer.getvalue()

    @staticmethod
    def _yes_no(value: bool) -> str:
        return "Sì" if value else "No"

    @staticmethod
    def _personal_rows(submission: Submission) -> List[Tuple[str, Optional[str]]]:
        rows = [
            ("Nome", submission.name),
            ("Cognome", submission.surname),
            ("Email", submission.email),
            ("Codice fiscale", submission.tax_code),
        ]
        if isinstance(submission, MembershipApplication):
            rows += [
                ("Nato a", submission.birth_place),
                ("Nato il", submission.birth_date.strftime("%d/%m/%Y")),
                ("Residenza", submission.address),
                ("Comune", f"{submission.city} ({submission.province})"),
                ("CAP", submission.postal_code),
                ("Telefono", submission.phone),
            ]
        return rows

    @staticmethod
    def _dog_rows(dog: DogInfo) -> List[Tuple[str, Optional[str]]]:
        return [
            ("Nome", dog.name),
            ("Sesso", dog.sex),
            ("Razza", dog.breed),
            ("Altezza", f"{dog.height_cm} cm" if dog.height_cm else None),
            ("Microchip", dog.microchip),
            ("Data di nascita", dog.birth_date.strftime("%d/%m/%Y") if dog.birth_date else None),
            ("Proprietario", dog.owner),
            ("Conduttore", dog.handler),
        ]

    @staticmethod
    def _section(pdf: canvas.Canvas, y: float, title: str, rows) -> float:
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(LEFT, y, title)
        y -= LINE
        pdf.setFont("Helvetica", 10)
        for label, value in rows:
            pdf.drawString(LEFT, y, f"{label}:")
            pdf.drawString(LEFT + 45 * mm, y, value or "-")
            y -= LINE
        return y - LINE / 2

    @staticmethod
    def _signature_block(pdf: canvas.Canvas, y: float, signature_data_url: Optional[str]):
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(LEFT, y, "Firma")
        y -= 25 * mm

        if signature_data_url:
            image = ImageReader(io.BytesIO(decode_signature(signature_data_url)))
            pdf.drawImage(
                image, LEFT, y, width=60 * mm, height=20 * mm,
                preserveAspectRatio=True, mask="auto",
            )
        else:
            pdf.line(LEFT, y, LEFT + 70 * mm, y)
            pdf.setFont("Helvetica-Oblique", 8)
            pdf.drawString(LEFT, y - 4 * mm, "Firma autografa")
