"""HTTP client for the ward API.

Wraps the REST endpoints and returns domain models. Any non-2xx response is
raised as ApiError carrying the status code and the server's error body.
"""

import logging
from datetime import datetime
from typing import Any, Optional, Union

import httpx

from wardtrack.domain.models import MedicalNote, NoteCreate, Patient, PatientCreate, PatientUpdate
from wardtrack.infrastructure.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ApiError(Exception):
    """A ward API call failed.

    Attributes:
        status_code: HTTP status (0 when the server could not be reached)
        error: Short error label from the response body
        detail: Human-readable detail, when the server sent one
    """

    def __init__(self, status_code: int, error: str, detail: Optional[str] = None):
        self.status_code = status_code
        self.error = error
        self.detail = detail
        message = f"{status_code} {error}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


def _payload(data: Union[dict, Any], **dump_kwargs) -> dict:
    if isinstance(data, dict):
        return data
    return data.model_dump(mode="json", by_alias=True, **dump_kwargs)


class WardApiClient:
    """Typed client for the ward REST API.

    Parameters:
        base_url: API root, e.g. http://localhost:8000 (defaults to WT_API_URL)
        client: Pre-built httpx.Client (e.g. a FastAPI TestClient); when
            given, base_url is ignored and the caller owns the client
        timeout: Request timeout in seconds

    Example Usage:
        ```python
        with WardApiClient("http://localhost:8000") as api:
            patients = api.get_patients()
            api.discharge_patient("MRN001", "Home with follow-up")
        ```
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT
    ):
        self._owns_client = client is None
        self._client = client or httpx.Client(
            base_url=(base_url or settings.api_url).rstrip("/"),
            timeout=timeout
        )

    def __enter__(self) -> "WardApiClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        try:
            response = self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {str(e)}")
            raise ApiError(0, "Connection Error", str(e))

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise ApiError(
                response.status_code,
                body.get("error") or response.reason_phrase,
                body.get("detail")
            )
        return response.json()

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def get_patients(self) -> list[Patient]:
        return [Patient.model_validate(item) for item in self._request("GET", "/patients")]

    def add_patient(self, patient: Union[PatientCreate, dict]) -> Patient:
        return Patient.model_validate(self._request("POST", "/patients", json=_payload(patient)))

    def update_patient(self, mrn: str, update: Union[PatientUpdate, dict]) -> Patient:
        body = _payload(update, exclude_unset=True)
        return Patient.model_validate(self._request("PUT", f"/patients/{mrn}", json=body))

    def discharge_patient(self, mrn: str, discharge_notes: str) -> Patient:
        body = {"dischargeNotes": discharge_notes}
        return Patient.model_validate(self._request("POST", f"/patients/{mrn}/discharge", json=body))

    # ------------------------------------------------------------------
    # Notes and specialties
    # ------------------------------------------------------------------

    def get_medical_notes(self, mrn: str) -> list[MedicalNote]:
        return [MedicalNote.model_validate(item) for item in self._request("GET", f"/patients/{mrn}/notes")]

    def add_medical_note(
        self,
        mrn: str,
        note: str,
        user: str,
        date: Optional[datetime] = None
    ) -> MedicalNote:
        payload = NoteCreate(patient_mrn=mrn, date=date or datetime.now(), note=note, user=user)
        return MedicalNote.model_validate(self._request("POST", "/notes", json=_payload(payload)))

    def get_specialties(self) -> list[str]:
        return list(self._request("GET", "/specialties"))
