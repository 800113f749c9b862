"""
Database Schemas for Wali Kelas (administrasi guru wali kelas)

Each Pydantic model maps to one table in the key-value store (see
database.TABLES). Records are stored as plain dicts produced by
model_dump() and read back with model_validate().

Tables:
- User -> "db_users"
- Guru -> "db_guru"
- Siswa -> "db_siswa"
- Absen -> "db_absen"
- Nilai -> "db_nilai"
- DokumenAI -> "db_dokumen_ai"
"""

from enum import Enum
from typing import Annotated, Optional, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

RoleType = Literal['guru', 'admin']
GenderType = Literal['L', 'P']
StatusType = Literal['H', 'S', 'I', 'A']
SemesterType = Literal['Ganjil', 'Genap']

DEFAULT_KELAS = "XII IPA 1"
DEFAULT_TAHUN_AJARAN = "2024/2025"
DEFAULT_SEMESTER = "Genap"


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("tidak boleh kosong")
    return value


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


class Record(BaseModel):
    model_config = ConfigDict(extra='ignore')


class User(Record):
    id: str
    nama_lengkap: str = Field(..., description="Login name, e.g. 'Nasrudin, S.Pd'")
    password: str = Field(..., description="Stored in plaintext")
    role: RoleType = 'guru'
    created_at: str


class GuruBase(Record):
    nama_sekolah: str
    logo_sekolah: Optional[str] = None
    nip: str = ""
    tempat_tanggal_lahir: Optional[str] = None
    kontak: Optional[str] = None
    alamat: Optional[str] = None
    email: Optional[str] = None
    motto: Optional[str] = None
    titi_mangsa: Optional[str] = Field(None, description="City used in signature dates")
    avatar: Optional[str] = None
    kelas_wali: Optional[str] = None
    mapel_ampu: Optional[str] = None
    nama_kepala_sekolah: Optional[str] = None
    nip_kepala_sekolah: Optional[str] = None


class GuruIn(GuruBase):
    """Profile body sent by the guru; identity comes from the session."""


class Guru(GuruBase):
    id: str
    user_id: str = Field(..., description="Reference to User.id (1:1)")


class SiswaBase(Record):
    tempat_tanggal_lahir: Optional[str] = None
    alamat: Optional[str] = None
    nisn: Optional[str] = Field(None, description="Nomor Induk Siswa Nasional")
    nama_ayah: Optional[str] = None
    nama_ibu: Optional[str] = None
    pekerjaan_orangtua: Optional[str] = None
    penghasilan_orangtua: Optional[float] = None
    kontak_orangtua: Optional[str] = None
    hobi: Optional[str] = None
    cita_cita: Optional[str] = None
    tinggi_badan: Optional[float] = None
    berat_badan: Optional[float] = None
    lingkar_kepala: Optional[float] = None


class SiswaIn(SiswaBase):
    """Validated constructor for a new student; core fields are required."""
    nama: NonBlankStr
    jenis_kelamin: GenderType
    kelas: str = DEFAULT_KELAS
    tahun_ajaran: str = DEFAULT_TAHUN_AJARAN
    semester: SemesterType = DEFAULT_SEMESTER


class Siswa(SiswaIn):
    id: str
    guru_id: str = Field(..., description="Reference to Guru.id (wali kelas)")
    created_at: str


class SiswaUpdate(SiswaBase):
    """Partial update; only fields that are set are merged."""
    nama: Optional[NonBlankStr] = None
    jenis_kelamin: Optional[GenderType] = None
    kelas: Optional[str] = None
    tahun_ajaran: Optional[str] = None
    semester: Optional[SemesterType] = None


class Absen(Record):
    id: str
    siswa_id: str
    tanggal: str = Field(..., description="Attendance calendar date (YYYY-MM-DD)")
    bulan: int = Field(..., ge=1, le=12)
    tahun: int
    status: StatusType


class GradeField(str, Enum):
    """Grade inputs a teacher may write. nilai_raport is derived, never set."""
    HARIAN1 = 'nilai_harian1'
    HARIAN2 = 'nilai_harian2'
    HARIAN3 = 'nilai_harian3'
    MID = 'nilai_mid'
    PAS = 'nilai_pas'


class Nilai(Record):
    id: str
    siswa_id: str
    mata_pelajaran: str
    nilai_harian1: float = 0
    nilai_harian2: float = 0
    nilai_harian3: float = 0
    nilai_mid: float = 0
    nilai_pas: float = 0
    nilai_raport: float = 0


class DokumenAI(Record):
    id: str
    guru_id: str
    jenis_dokumen: str
    topik: str
    isi_html: str
    created_at: str


class Session(BaseModel):
    """Explicit login context handed to every access call."""
    token: str
    user: User
    guru: Guru

    @property
    def guru_id(self) -> str:
        return self.guru.id


class DocParams(BaseModel):
    type: str
    teacherName: str
    teacherNip: str = ""
    schoolName: str
    headmaster: str = ""
    headmasterNip: str = ""
    subject: str
    grade: str
    topic: NonBlankStr
    semester: str
    year: str
    date: str = Field(..., description="Titi mangsa and date, e.g. 'Bandung, 1 Juli 2024'")
    jenjang: Optional[str] = None
