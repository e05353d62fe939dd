import json

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import IntegrityError, transaction

from crm.models import Patient
from crm.services.patients import next_emr_number

pytestmark = pytest.mark.django_db

URL = "/api/staff/patient-registration"


def test_register_patient(clinic, clinic_owner, client_for):
    r = client_for(clinic_owner).post(URL, {
        "firstName": "Omar", "lastName": "Saeed", "gender": "Male", "mobileNumber": "+971500000321",
    }, format="json")
    assert r.status_code == 201, r.data
    assert r.data["patient"]["fullName"] == "Omar Saeed"
    assert r.data["patient"]["emrNumber"] == f"EMR-{clinic.id}-00001"


def test_emr_numbers_continue_after_deletions(clinic, clinic_owner, patient, client_for):
    Patient.objects.create(clinic=clinic, emr_number=f"EMR-{clinic.id}-00002", first_name="Noor",
                           mobile_number="971500000002")
    patient.delete()
    assert next_emr_number(clinic) == f"EMR-{clinic.id}-00003"
    r = client_for(clinic_owner).post(URL, {"firstName": "Rami", "mobileNumber": "971500000003"}, format="json")
    assert r.data["patient"]["emrNumber"] == f"EMR-{clinic.id}-00003"


def test_explicit_emr_number_must_be_free(clinic, clinic_owner, patient, client_for):
    r = client_for(clinic_owner).post(URL, {
        "firstName": "Sara", "mobileNumber": "971500000004", "emrNumber": patient.emr_number,
    }, format="json")
    assert r.status_code == 400
    assert r.data["message"] == "EMR number is already in use"


def test_emr_numbers_are_unique_per_clinic(clinic, other_clinic, patient):
    Patient.objects.create(clinic=other_clinic, emr_number=patient.emr_number, first_name="Twin",
                           mobile_number="971500000005")
    Patient.objects.create(clinic=clinic, first_name="Blank", mobile_number="971500000006")
    Patient.objects.create(clinic=clinic, first_name="Blank2", mobile_number="971500000007")
    with pytest.raises(IntegrityError), transaction.atomic():
        Patient.objects.create(clinic=clinic, emr_number=patient.emr_number, first_name="Dup",
                               mobile_number="971500000008")


def test_duplicate_name_and_mobile_rejected(clinic, clinic_owner, patient, client_for):
    r = client_for(clinic_owner).post(URL, {"firstName": "layla", "mobileNumber": patient.mobile_number},
                                      format="json")
    assert r.status_code == 400
    assert r.data["message"] == "Patient with this name and mobile number already exists"


def test_search_patients(clinic, clinic_owner, patient, client_for):
    r = client_for(clinic_owner).get(URL, {"search": "hass"})
    assert [p["id"] for p in r.data["patients"]] == [patient.id]


IMPORT = "/api/clinic/import-patients"


def patients_csv(body):
    return SimpleUploadedFile("patients.csv", body.encode(), content_type="text/csv")


def test_import_patients_reports_failed_rows(clinic, clinic_owner, client_for):
    upload = patients_csv(
        "firstName,lastName,gender,mobileNumber\n"
        "Omar,Saeed,male,971500000321\n"
        "Rana,,female,12\n"
        ",,Male,971500000999\n"
    )
    r = client_for(clinic_owner).post(IMPORT, {"file": upload}, format="multipart")
    assert r.status_code == 200, r.data
    assert r.data["message"] == "Imported 1 patients. 2 failed."
    assert (r.data["data"]["total"], r.data["data"]["imported"], r.data["data"]["failed"]) == (3, 1, 2)
    assert [e.split(":")[0] for e in r.data["data"]["errors"]] == ["Row 3", "Row 4"]
    imported = Patient.objects.get(clinic=clinic)
    assert (imported.full_name, imported.gender) == ("Omar Saeed", "Male")
    assert imported.emr_number == f"EMR-{clinic.id}-00001"


def test_import_patients_with_only_invalid_rows(clinic, clinic_owner, client_for):
    upload = patients_csv("firstName,gender,mobileNumber\nRana,Female,\n")
    r = client_for(clinic_owner).post(IMPORT, {"file": upload}, format="multipart")
    assert r.status_code == 400
    assert r.data["message"] == "All rows have validation errors"
    assert r.data["data"]["errors"] == ["Row 2: mobileNumber required"]


def test_import_patients_with_column_mapping(clinic, clinic_owner, client_for):
    upload = patients_csv("Patient,Sex,Phone No\nHuda,F,971500000444\n")
    mapping = {"Patient": "firstName", "Sex": "gender", "Phone No": "mobileNumber"}
    r = client_for(clinic_owner).post(IMPORT, {"file": upload, "columnMapping": json.dumps(mapping)},
                                      format="multipart")
    assert r.status_code == 400
    assert r.data["data"]["errors"][0].startswith("Row 2:")

    upload = patients_csv("Patient,Sex,Phone No\nHuda,female,971500000444\n")
    r = client_for(clinic_owner).post(IMPORT, {"file": upload, "columnMapping": json.dumps(mapping)},
                                      format="multipart")
    assert r.status_code == 200, r.data
    assert Patient.objects.get(clinic=clinic).mobile_number == "971500000444"


def test_import_patients_needs_a_file(clinic, clinic_owner, client_for):
    r = client_for(clinic_owner).post(IMPORT, {}, format="multipart")
    assert r.status_code == 400
    assert r.data["message"] == "File is required for import"
