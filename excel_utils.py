import io
import math
import logging
import sqlite3
import zipfile
from dataclasses import dataclass, field
from xml.etree.ElementTree import ParseError

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from models import Subject, Student, Result

logger = logging.getLogger(__name__)

ADMISSION_COLUMN = 'ADM.NO'
NAME_COLUMN = 'NAME'
SUMMARY_COLUMN = '%'
RESERVED_COLUMNS = (ADMISSION_COLUMN, NAME_COLUMN, SUMMARY_COLUMN)


class SheetFormatError(ValueError):
    pass


class EmptySheetError(SheetFormatError):
    pass


class RowValidationError(ValueError):
    pass


@dataclass
class SheetRow:
    row_number: int
    values: dict


@dataclass
class ParsedSheet:
    headers: list
    subject_headers: list
    rows: list


@dataclass
class ImportOutcome:
    succeeded_rows: list = field(default_factory=list)
    subjects: list = field(default_factory=list)
    error: str = None

    @property
    def ok(self):
        return self.error is None

    def message(self):
        if self.ok:
            return (f"Results uploaded successfully. Imported {len(self.succeeded_rows)} "
                    f"students across {len(self.subjects)} subjects.")
        message = f"Failed to upload results: {self.error}"
        if self.succeeded_rows:
            message += (f" ({len(self.succeeded_rows)} earlier rows were saved; "
                        f"fix the file and upload it again.)")
        return message


def normalize_identifier(value):
    """Cell value as clean text; numeric cells like 1024.0 become '1024'."""
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_marks(value):
    """Parse a marks cell into a float, raising ValueError for anything non-numeric."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a number ({value!r})")
    if isinstance(value, (int, float)):
        marks = float(value)
    else:
        text = str(value).strip()
        if not text:
            raise ValueError("no marks given")
        try:
            marks = float(text)
        except ValueError:
            raise ValueError(f"not a number ({text!r})")
    if not math.isfinite(marks):
        raise ValueError(f"not a number ({value!r})")
    return marks


class ResultSheetParser:

    @staticmethod
    def parse(file_stream):
        """
        Reads the first worksheet of a result sheet.
        The header row must hold ADM.NO and NAME; every other column except '%'
        is a subject. Fully blank rows are skipped, empty cells are left out of
        the row values.
        """
        try:
            wb = openpyxl.load_workbook(file_stream, read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, ParseError, KeyError, OSError) as e:
            raise SheetFormatError(f"Could not read the uploaded file: {str(e)}")

        try:
            # read-only worksheets parse their XML lazily, so broken sheet data
            # only shows up while iterating
            try:
                sheet_rows = list(wb.worksheets[0].iter_rows(values_only=True))
            except (ParseError, ValueError, KeyError, zipfile.BadZipFile) as e:
                raise SheetFormatError(f"Could not read the uploaded file: {str(e)}")

            rows = iter(sheet_rows)
            header_cells = next(rows, None)
            if header_cells is None or all(cell is None for cell in header_cells):
                raise EmptySheetError("The uploaded file is empty")

            headers = [str(cell).strip() if cell is not None else None for cell in header_cells]
            for required in (ADMISSION_COLUMN, NAME_COLUMN):
                if required not in headers:
                    raise SheetFormatError(f"Missing required column: {required}")

            subject_headers = []
            for header in headers:
                if header and header not in RESERVED_COLUMNS and header not in subject_headers:
                    subject_headers.append(header)
            if not subject_headers:
                raise SheetFormatError("No subject columns found in the uploaded file")

            parsed_rows = []
            for row_number, cells in enumerate(rows, start=2):
                values = {}
                for header, cell in zip(headers, cells):
                    if not header or cell is None:
                        continue
                    if isinstance(cell, str) and not cell.strip():
                        continue
                    values[header] = cell
                if values:
                    parsed_rows.append(SheetRow(row_number=row_number, values=values))
        finally:
            wb.close()

        if not parsed_rows:
            raise EmptySheetError("The uploaded file is empty")

        return ParsedSheet(headers=headers, subject_headers=subject_headers, rows=parsed_rows)


class ResultImporter:

    @staticmethod
    def download_template():
        """
        Generates a blank result sheet in memory.
        """
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "Results"

        ws.append([ADMISSION_COLUMN, NAME_COLUMN, 'English', 'Mathematics', 'Science', SUMMARY_COLUMN])
        ws.append(['1001', 'Jane Doe', 78, 91, 66, None])

        file_data = io.BytesIO()
        wb.save(file_data)
        file_data.seek(0)

        return file_data, "results_template.xlsx"

    @staticmethod
    def _validate_row(row, subject_headers):
        admission_no = normalize_identifier(row.values.get(ADMISSION_COLUMN))
        if not admission_no:
            raise RowValidationError(f"Row {row.row_number}: missing {ADMISSION_COLUMN}")

        name = normalize_identifier(row.values.get(NAME_COLUMN))
        if not name:
            raise RowValidationError(f"Row {row.row_number} ({admission_no}): missing {NAME_COLUMN}")

        marks = []
        for subject in subject_headers:
            try:
                marks.append((subject, parse_marks(row.values.get(subject))))
            except ValueError as e:
                raise RowValidationError(
                    f"Row {row.row_number} ({admission_no}): marks for '{subject}' are {str(e)}"
                )
        return admission_no, name, marks

    @staticmethod
    def import_results(class_id, file_stream):
        """
        Imports a result sheet into one class.

        Subjects are upserted and read back before any row is written. Rows are
        then saved one at a time in sheet order; the first failing row stops the
        import. Rows saved before the failure stay saved, and uploading the same
        file again is safe because every write is an upsert.
        """
        outcome = ImportOutcome()

        try:
            sheet = ResultSheetParser.parse(file_stream)
        except SheetFormatError as e:
            logger.warning("Result sheet rejected for class %s: %s", class_id, e)
            outcome.error = str(e)
            return outcome

        outcome.subjects = list(sheet.subject_headers)
        logger.info("Importing %d rows with %d subjects into class %s",
                    len(sheet.rows), len(sheet.subject_headers), class_id)

        for subject in sheet.subject_headers:
            try:
                Subject.upsert(subject)
            except sqlite3.Error:
                logger.exception("Failed to create subject %s", subject)
                outcome.error = f"Failed to create subject: {subject}"
                return outcome

        try:
            subject_ids = Subject.get_by_names(sheet.subject_headers)
        except sqlite3.Error:
            logger.exception("Failed to fetch subjects")
            outcome.error = "Failed to fetch subjects"
            return outcome

        missing = [subject for subject in sheet.subject_headers if subject not in subject_ids]
        if missing:
            outcome.error = f"Failed to fetch subjects: {', '.join(missing)}"
            return outcome

        for row in sheet.rows:
            try:
                admission_no, name, marks = ResultImporter._validate_row(row, sheet.subject_headers)
            except RowValidationError as e:
                logger.warning("Import into class %s stopped: %s", class_id, e)
                outcome.error = str(e)
                break

            try:
                student_id = Student.upsert(admission_no, name, class_id)
                for subject, subject_marks in marks:
                    Result.upsert(student_id, subject_ids[subject], subject_marks)
            except sqlite3.Error:
                logger.exception("Failed to save row %d (%s)", row.row_number, admission_no)
                outcome.error = f"Row {row.row_number}: failed to save results for student {admission_no}"
                break

            outcome.succeeded_rows.append(admission_no)

        logger.info("Import into class %s finished: %d rows saved%s",
                    class_id, len(outcome.succeeded_rows),
                    "" if outcome.ok else f", stopped with error: {outcome.error}")
        return outcome
