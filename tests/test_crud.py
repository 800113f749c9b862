import pytest
from pydantic import ValidationError

import crud
import database
from database import TABLES
from schemas import GradeField, SiswaIn


# Seed & auth

def test_seed_runs_once(store):
    assert crud.seed_initial_data() is True
    assert crud.seed_initial_data() is False
    assert len(database.get_table(TABLES["SISWA"])) == 2


def test_login_with_seeded_user(seeded):
    sess = crud.login_user("Nasrudin, S.Pd", "123")
    assert sess is not None
    assert sess.guru.nama_sekolah == "SMA Negeri 1 Contoh"
    assert sess.user.id == "u_admin_01"
    assert crud.get_current_guru_id() == "g_01"


def test_login_wrong_password(seeded):
    assert crud.login_user("Nasrudin, S.Pd", "wrong") is None
    assert crud.get_current_guru_id() is None


def test_session_roundtrip_and_logout(seeded):
    sess = crud.login_user("Nasrudin, S.Pd", "123")
    assert crud.get_session(sess.token).guru_id == "g_01"
    crud.logout(sess.token)
    assert crud.get_session(sess.token) is None


def test_update_password(seeded):
    assert crud.update_password("u_admin_01", "baru") is True
    assert crud.login_user("Nasrudin, S.Pd", "123") is None
    assert crud.login_user("Nasrudin, S.Pd", "baru") is not None


def test_update_password_unknown_user(seeded):
    assert crud.update_password("nope", "x") is False


def test_save_guru_profile_replaces(seeded):
    guru = crud.get_guru_profile("g_01")
    crud.save_guru_profile(guru.model_copy(update={"motto": "Belajar sepanjang hayat"}))
    assert crud.get_guru_profile("g_01").motto == "Belajar sepanjang hayat"
    assert len(database.get_table(TABLES["GURU"])) == 1


# Siswa

def test_list_siswa_sorted_by_name(seeded):
    crud.save_siswa({"nama": "budi", "jenis_kelamin": "L"}, "g_01")
    crud.save_siswa({"nama": "Ádi", "jenis_kelamin": "L"}, "g_01")
    names = [s.nama for s in crud.list_siswa_by_guru("g_01")]
    assert names == ["Ádi", "Ahmad Rizky", "budi", "Citra Kirana"]


def test_list_siswa_filters_by_guru(seeded):
    crud.save_siswa({"nama": "Lain", "jenis_kelamin": "P"}, "g_99")
    assert all(s.guru_id == "g_01" for s in crud.list_siswa_by_guru("g_01"))
    assert [s.nama for s in crud.list_siswa_by_guru("g_99")] == ["Lain"]


def test_insert_applies_defaults(store):
    siswa = crud.save_siswa({"nama": "Dewi", "jenis_kelamin": "P"}, "g_01")
    assert siswa.id
    assert siswa.kelas == "XII IPA 1"
    assert siswa.tahun_ajaran == "2024/2025"
    assert siswa.semester == "Genap"


def test_generated_ids_are_unique():
    assert len({crud.generate_id() for _ in range(200)}) == 200


def test_insert_rejects_blank_name_without_writing(store):
    with pytest.raises(ValidationError):
        crud.save_siswa({"nama": "   ", "jenis_kelamin": "L"}, "g_01")
    assert database.get_table(TABLES["SISWA"]) == []


def test_siswa_in_requires_gender():
    with pytest.raises(ValidationError):
        SiswaIn(nama="Dewi")


def test_update_merges_fields(seeded):
    updated = crud.save_siswa({"id": "s_01", "cita_cita": "Dokter"}, "g_01")
    assert updated.cita_cita == "Dokter"
    assert updated.nama == "Ahmad Rizky"
    assert crud.get_siswa("s_01").cita_cita == "Dokter"


def test_update_unknown_id_is_noop(seeded):
    before = database.get_table(TABLES["SISWA"])
    assert crud.save_siswa({"id": "ghost", "nama": "X"}, "g_01") is None
    assert database.get_table(TABLES["SISWA"]) == before


def test_delete_does_not_cascade(seeded):
    crud.upsert_absen("s_01", "2024-08-01", "S")
    crud.upsert_nilai("s_01", "MATEMATIKA", GradeField.MID, 80)

    assert crud.delete_siswa("s_01") is True
    assert "s_01" not in [s.id for s in crud.list_siswa_by_guru("g_01")]
    assert crud.get_absen("s_01", "2024-08-01").status == "S"
    assert crud.get_nilai("s_01", "MATEMATIKA").nilai_mid == 80


def test_delete_unknown(seeded):
    assert crud.delete_siswa("ghost") is False


# Absen

def test_upsert_absen_twice_keeps_one_record(store):
    crud.upsert_absen("s_01", "2024-08-05", "S")
    crud.upsert_absen("s_01", "2024-08-05", "A")
    rows = database.get_table(TABLES["ABSEN"])
    assert len(rows) == 1
    assert rows[0]["status"] == "A"
    assert rows[0]["bulan"] == 8
    assert rows[0]["tahun"] == 2024


def test_upsert_absen_rejects_bad_input(store):
    with pytest.raises(ValueError):
        crud.upsert_absen("s_01", "2024-08-05", "X")
    with pytest.raises(ValueError):
        crud.upsert_absen("s_01", "05/08/2024", "S")


def test_get_absen_by_bulan(store):
    crud.upsert_absen("s_01", "2024-08-05", "S")
    crud.upsert_absen("s_02", "2024-08-06", "I")
    crud.upsert_absen("s_01", "2024-09-01", "A")
    crud.upsert_absen("s_03", "2024-08-07", "A")
    rows = crud.get_absen_by_bulan(["s_01", "s_02"], 8, 2024)
    assert sorted(r.tanggal for r in rows) == ["2024-08-05", "2024-08-06"]


def test_status_cycle():
    assert crud.next_status(None) == "S"
    assert crud.next_status("S") == "I"
    assert crud.next_status("I") == "A"
    assert crud.next_status("A") == "H"


def test_cycle_absen_wraps_to_present(store):
    statuses = [crud.cycle_absen("s_01", "2024-08-05").status for _ in range(4)]
    assert statuses == ["S", "I", "A", "H"]
    assert len(database.get_table(TABLES["ABSEN"])) == 1


# Nilai

def test_raport_formula(store):
    for field, value in [
        (GradeField.HARIAN1, 80), (GradeField.HARIAN2, 90), (GradeField.HARIAN3, 70),
        (GradeField.MID, 75), (GradeField.PAS, 85),
    ]:
        nilai = crud.upsert_nilai("s_01", "MATEMATIKA", field, value)
    expected = round((80 + 90 + 70) / 3 * 0.4 + 75 * 0.3 + 85 * 0.3, 1)
    assert nilai.nilai_raport == expected == 80.0


def test_raport_recomputed_on_each_update(store):
    nilai = crud.upsert_nilai("s_01", "Fisika", "nilai_pas", 90)
    assert nilai.nilai_raport == 27.0
    nilai = crud.upsert_nilai("s_01", "Fisika", "nilai_mid", 77)
    assert nilai.nilai_raport == 50.1
    assert len(database.get_table(TABLES["NILAI"])) == 1


def test_hitung_raport_rounds_one_decimal():
    assert crud.hitung_raport(70, 75, 80, 77, 88) == 79.5


def test_raport_cannot_be_set_directly(store):
    with pytest.raises(ValueError):
        crud.upsert_nilai("s_01", "Fisika", "nilai_raport", 100)
    assert database.get_table(TABLES["NILAI"]) == []


def test_values_outside_range_are_kept(store):
    nilai = crud.upsert_nilai("s_01", "Kimia", GradeField.MID, 150)
    assert nilai.nilai_mid == 150


def test_grades_are_per_subject(store):
    crud.upsert_nilai("s_01", "Kimia", GradeField.MID, 60)
    crud.upsert_nilai("s_01", "Biologi", GradeField.MID, 90)
    assert crud.get_nilai("s_01", "Kimia").nilai_mid == 60
    assert crud.get_nilai("s_01", "Biologi").nilai_mid == 90
    assert crud.get_nilai("s_01", "Sosiologi") is None


# Dokumen

def test_dokumen_ai_saved_per_guru(store):
    crud.save_dokumen_ai("g_01", "Silabus", "Puisi", "<p>isi</p>")
    crud.save_dokumen_ai("g_02", "Silabus", "Pantun", "<p>lain</p>")
    docs = crud.list_dokumen_ai("g_01")
    assert [d.topik for d in docs] == ["Puisi"]
    assert crud.get_dokumen_ai(docs[0].id).isi_html == "<p>isi</p>"
