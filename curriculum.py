"""Authored curriculum: per-level lessons with learning-style variants.

Topics listed here are answered from static content for level material and
never hit the generative service for it. Lessons can be overridden (or added
for other topics) through the document store under `lesson:{topic}:{level}`.
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from errors import LessonNotFound
from models import Fragment, LearningStyle, Lesson, QuizItem
from store import DocumentStore, StoreError


def _quiz(question: str, options: List[str], correct: int, explanation: str) -> Dict[str, Any]:
    return {
        "question": question,
        "options": options,
        "correct_option_index": correct,
        "explanation": explanation,
    }


# ---------------------------------------------
# Aljabar
# ---------------------------------------------
ALJABAR: Dict[int, Dict[str, Any]] = {
    1: {
        "title": "Filosofi Aljabar & Si Kotak Misteri",
        "content": (
            "Al-jabr berasal dari bahasa Arab yang artinya restorasi atau melengkapi. "
            "Huruf x adalah Kotak Misteri yang menyimpan angka rahasia. Tugas kita adalah "
            "mencari tahu isinya agar timbangan tetap seimbang."
        ),
        "variants": {
            LearningStyle.VISUAL: (
                "### 🏛️ Asal Usul Aljabar\n"
                "**Al-Khawarizmi** menemukan Aljabar untuk **\"Menyeimbangkan\"**.\n\n"
                "| Sisi Kiri | Tanda | Sisi Kanan |\n| :---: | :---: | :---: |\n| $x + 4$ | $=$ | $10$ |\n\n"
                "Untuk seimbang, \"Kotak $x$\" harus berisi angka **6**. $(6) + 4 = 10$ ✅"
            ),
            LearningStyle.AUDITORY: (
                "### 🎧 Cerita Aljabar\nDengarkan baik-baik ya! Aljabar itu seperti teka-teki detektif. "
                "Kata kuncinya adalah **MENYEIMBANGKAN**. Jika Kotak X ditambah 4 hasilnya 10, "
                "isinya pasti 6. Karena 6 tambah 4 sama dengan 10."
            ),
            LearningStyle.KINESTHETIC: (
                "### 🛠️ Lab Aljabar: Mari Mencoba!\nAmbil 10 benda kecil (koin/batu) di sekitarmu.\n\n"
                "**Langkah 1:** Taruh 4 koin di kiri dan 10 koin di kanan.\n\n"
                "**Langkah 2:** Berapa koin lagi yang harus ditaruh di kiri supaya jumlahnya SAMA?"
            ),
        },
        "fragments": [
            "Al-jabr berasal dari bahasa Arab yang artinya restorasi atau melengkapi.",
            "Huruf x adalah Kotak Misteri yang menyimpan angka rahasia.",
            "Tugas kita adalah mencari isi kotak agar timbangan tetap seimbang: x + 4 = 10.",
        ],
        "quiz": [
            _quiz("Siapa penemu konsep Aljabar?", ["Al-Khawarizmi", "Pythagoras", "Newton"], 0,
                  "Tepat! Al-Khawarizmi adalah Bapak Aljabar."),
            _quiz("Jika x + 4 = 10, berapa isi x?", ["4", "6", "14"], 1, "Betul! 6 + 4 = 10."),
            _quiz("Apa arti kata Al-jabr?", ["Penghancuran", "Pengurangan", "Restorasi"], 2,
                  "Benar! Al-jabr artinya restorasi/melengkapi."),
        ],
    },
    2: {
        "title": "Anatomi Bentuk Aljabar",
        "content": (
            "Variabel adalah huruf yang nilainya berubah. Koefisien adalah angka di depan "
            "variabel. Konstanta adalah angka tetap."
        ),
        "variants": {
            LearningStyle.VISUAL: (
                "### 🦴 Anatomi Aljabar (Diagram)\nLihat bentuk ini: **$3x + 8$**\n\n"
                "| Bagian | Nama | Fungsi |\n| :---: | :---: | :--- |\n"
                "| **$x$** | **Variabel** | Si \"Kotak Misteri\" |\n"
                "| **$3$** | **Koefisien** | Jumlah Kotak |\n| **$8$** | **Konstanta** | Angka tetap |"
            ),
            LearningStyle.AUDITORY: (
                "### 🎧 Lagu Anatomi Aljabar\n1. **Variabel**: Itu hurufnya! Isinya misterius.\n"
                "2. **Koefisien**: Angka di depan huruf.\n3. **Konstanta**: Angka yang sendirian, tidak berubah."
            ),
            LearningStyle.KINESTHETIC: (
                "### 🖐️ Gerak Aljabar\n1. Kepalkan tangan kiri = **Variabel ($x$)**.\n"
                "2. Tunjukkan 3 jari tangan kanan = **Koefisien ($3$)**.\n3. Taruh benda diam di meja = **Konstanta**."
            ),
        },
        "fragments": [
            "Variabel adalah huruf yang nilainya bisa berubah, misalnya x atau y.",
            "Koefisien adalah angka yang menempel di depan variabel.",
            "Konstanta adalah angka yang berdiri sendiri dan nilainya tetap.",
        ],
        "quiz": [
            _quiz("Pada 5y + 12, mana konstantanya?", ["5", "y", "12"], 2,
                  "Tepat! 12 adalah angka yang berdiri sendiri."),
            _quiz("Mana variabel pada 3a - 7?", ["3", "a", "-7"], 1, "Benar! 'a' adalah variabelnya."),
            _quiz("Apa itu koefisien?", ["Nilai tetap", "Angka di depan variabel", "Huruf"], 1,
                  "Betul! Angka yang menempel di depan variabel."),
        ],
    },
    3: {
        "title": "Operasi Penjumlahan & Pengurangan",
        "content": "Hanya suku sejenis (variabel & pangkat sama) yang bisa dijumlah atau dikurang.",
        "variants": {
            LearningStyle.VISUAL: (
                "### 🍎 Visualisasi Suku Sejenis\n| Benda | Simbol | Operasi | Hasil |\n"
                "| :---: | :---: | :---: | :---: |\n| 3 Apel | $3a$ | + 2 Apel ($2a$) | $5a$ ✅ |\n"
                "| 3 Apel | $3a$ | + 2 Jeruk ($2j$) | $3a+2j$ ❌ |"
            ),
            LearningStyle.AUDITORY: (
                "### 🎧 Cerita Pasar Buah\nKamu beli **3 Apel ($3a$)** lalu **2 Jeruk ($2j$)**. "
                "Bisakah kamu bilang \"Saya beli 5 Apel-Jeruk\"? Tentu TIDAK!"
            ),
            LearningStyle.KINESTHETIC: (
                "### 🧺 Sortir Barang\nTumpuk 3 Pensil + 4 Pensil, lalu hitung (7 Pensil). "
                "Penghapus tetap di tumpukannya sendiri. Itulah prinsip Suku Sejenis."
            ),
        },
        "fragments": [
            "Suku sejenis punya variabel dan pangkat yang sama, misalnya 3a dan 2a.",
            "Hanya suku sejenis yang bisa dijumlah atau dikurang: 3a + 2a = 5a.",
            "Suku tidak sejenis dibiarkan terpisah: 3a + 2j tetap 3a + 2j.",
        ],
        "quiz": [
            _quiz("Hasil dari 4x + 2y + 3x?", ["9xy", "7x + 2y", "5x + 4y"], 1, "Tepat! 4x + 3x = 7x. 2y tetap."),
            _quiz("Sederhanakan 8a - 3a + 5", ["5a + 5", "11a", "5a - 5"], 0, "Benar! 8a - 3a = 5a."),
            _quiz("Hasil 10p - (3p + 2)?", ["7p + 2", "7p - 2", "13p + 2"], 1,
                  "Hati-hati tanda kurung! 10p - 3p = 7p, dan -2."),
        ],
    },
    4: {
        "title": "Keajaiban Perkalian Distributif",
        "content": (
            "Perkalian aljabar bisa dilakukan pada suku tidak sejenis menggunakan metode "
            "distributif (sebar). Rumus: a(b + c) = ab + ac."
        ),
        "variants": {
            LearningStyle.VISUAL: "### 🌈 Metode Pelangi (Distributif)\nRumus: $a(b + c) = ab + ac$",
            LearningStyle.AUDITORY: (
                "### 🎧 Paket Hadiah\nAngka di luar kurung adalah **Hadiah Spesial** yang harus "
                "diberikan ke **SETIAP** teman di dalam kurung."
            ),
            LearningStyle.KINESTHETIC: (
                "### 🤝 Salaman Keliling\nKamu di luar kurung, di dalam ada 2 orang. "
                "Tugasmu: **Masuk dan Salaman dengan SEMUA orang.**"
            ),
        },
        "fragments": [
            "Perkalian aljabar bisa dilakukan pada suku yang tidak sejenis.",
            "Metode distributif menyebarkan pengali ke setiap suku: a(b + c) = ab + ac.",
        ],
        "quiz": [
            _quiz("Berapakah hasil dari (3x) dikali (2y)?", ["5xy", "6xy", "6x+y"], 1,
                  "Tepat! Kalikan angkanya (3x2=6) dan hurufnya (xy)."),
            _quiz("Gunakan distributif untuk 4(2p + 3)", ["8p + 3", "8p + 12", "6p + 7"], 1,
                  "Benar! 4x2p=8p, 4x3=12."),
            _quiz("Hasil dari (x + 2)(x + 3)?", ["x^2 + 5x + 6", "x^2 + 6", "x^2 + 5x + 5"], 0,
                  "Luar biasa! Metode pelangi ganda."),
        ],
    },
    5: {
        "title": "Seni Pemfaktoran Aljabar",
        "content": (
            "Pemfaktoran adalah menguraikan persamaan ke bentuk faktor. Cari dua angka yang "
            "jika dikali hasilnya c dan dijumlah hasilnya b."
        ),
        "variants": {
            LearningStyle.VISUAL: (
                "### 🧩 Puzzle Pemfaktoran\nMisi: $x^2 + 5x + 6 \\rightarrow (x+2)(x+3)$\n\n"
                "| Dikali (Belakang) | Dijumlah (Tengah) |\n| :---: | :---: |\n| 2 × 3 = 6 | 2 + 3 = 5 |"
            ),
            LearningStyle.AUDITORY: (
                "### 🎧 Tebak Angka Rahasia\n\"Kalau dikali hasilnya 6, kalau dijumlah hasilnya 5.\" "
                "1 dan 6? Jumlahnya 7, salah. 2 dan 3? BENAR!"
            ),
            LearningStyle.KINESTHETIC: (
                "### 🏗️ Bongkar Pasang Lego\nPersamaan kuadrat itu seperti bangunan Lego yang sudah jadi. "
                "Tugas kita adalah **membongkarnya** kembali."
            ),
        },
        "fragments": [
            "Pemfaktoran menguraikan bentuk aljabar menjadi perkalian faktor-faktornya.",
            "Untuk x^2 + bx + c, cari dua angka yang dikali hasilnya c dan dijumlah hasilnya b.",
        ],
        "quiz": [
            _quiz("Apa tujuan dari Pemfaktoran?",
                  ["Menambah angka", "Menguraikan ke bentuk faktor", "Menghilangkan variabel"], 1,
                  "Tepat! Kita ingin memecahnya menjadi perkalian."),
            _quiz("Faktorkan x^2 - 5x + 6", ["(x-1)(x-5)", "(x-2)(x-3)", "(x+2)(x+3)"], 1, "Benar! -2 dan -3."),
            _quiz("Faktorkan x^2 + 7x + 10", ["(x+2)(x+5)", "(x+1)(x+10)", "(x-2)(x-5)"], 0,
                  "Pintar! 2 dan 5 jika dikali 10, dijumlah 7."),
        ],
    },
}

# ---------------------------------------------
# Geometri
# ---------------------------------------------
GEOMETRI: Dict[int, Dict[str, Any]] = {
    1: {
        "title": "Dasar-Dasar Geometri & Aksioma",
        "content": (
            "Struktur geometri terdiri dari unsur tidak didefinisikan (titik, garis, bidang), "
            "unsur didefinisikan (sinar garis, ruas garis), aksioma, dan teorema."
        ),
        "variants": {
            LearningStyle.VISUAL: "Garis (↔) tidak terbatas, Ruas Garis (•---•) punya ujung dan pangkal.",
            LearningStyle.AUDITORY: (
                "Bayangkan garis sebagai jalan tanpa ujung, sedangkan ruas garis adalah jembatan "
                "dengan dua gerbang di ujungnya."
            ),
            LearningStyle.KINESTHETIC: (
                "Gunakan penggaris untuk menggambar ruas garis AB, lalu buat titik C di luarnya "
                "dan tarik garis sejajar."
            ),
        },
        "fragments": [
            "Struktur geometri terdiri dari unsur tidak didefinisikan, unsur didefinisikan, aksioma, dan teorema.",
            "Garis tidak terbatas ke dua arah, sinar garis hanya memanjang ke satu arah.",
            "Melalui titik P di luar garis g, tepat ada satu garis h yang sejajar dengan g.",
        ],
        "quiz": [
            _quiz("Mana yang merupakan konsep yang disepakati benar tanpa perlu pembuktian?",
                  ["Teorema", "Aksioma", "Definisi"], 1,
                  "Aksioma adalah konsep yang disepakati benar tanpa pembuktian deduktif."),
            _quiz("Unsur geometri satu dimensi yang hanya memiliki panjang disebut?",
                  ["Garis", "Bidang", "Titik"], 0, "Garis hanya memiliki unsur panjang."),
            _quiz("Dua garis disebut sejajar jika?", ["Berpotongan", "Tegak lurus", "Tidak punya titik potong"], 2,
                  "Dua garis sejajar tidak memiliki titik potong sama sekali."),
        ],
    },
    2: {
        "title": "Klasifikasi Segitiga & Garis Istimewa",
        "content": (
            "Segitiga dibedakan menjadi lancip, siku-siku, dan tumpul. Garis tinggi, garis bagi, "
            "dan garis berat adalah garis istimewa segitiga. Jumlah sudutnya selalu 180°."
        ),
        "variants": {
            LearningStyle.VISUAL: "Lihat bagaimana ketiga garis istimewa berpotongan di satu titik.",
        },
        "fragments": [
            "Berdasarkan sudutnya, segitiga bisa lancip, siku-siku, atau tumpul.",
            "Garis tinggi, garis bagi, dan garis berat adalah garis istimewa segitiga.",
            "Jumlah seluruh sudut dalam segitiga mana pun adalah 180 derajat.",
        ],
        "quiz": [
            _quiz("Satu sudut segitiga besarnya 110 derajat. Segitiga ini termasuk jenis?",
                  ["Lancip", "Tumpul", "Siku-siku"], 1, "Segitiga tumpul memiliki sudut antara 90 dan 180 derajat."),
            _quiz("Garis yang membagi sisi di depan sudut menjadi dua bagian sama panjang disebut?",
                  ["Garis Tinggi", "Garis Bagi", "Garis Berat"], 2,
                  "Garis berat membagi sisi di hadapannya sama panjang."),
            _quiz("Pada segitiga sama sisi, berapakah besar setiap sudutnya?",
                  ["60 derajat", "90 derajat", "45 derajat"], 0, "Setiap sudutnya 60 derajat."),
        ],
    },
    5: {
        "title": "Bangun Ruang & Kaidah Euler",
        "content": (
            "Bangun ruang memiliki sisi, rusuk, dan titik sudut. Hubungan ketiganya pada "
            "prisma dan limas adalah S + T = R + 2."
        ),
        "variants": {
            LearningStyle.VISUAL: "Kubus: 6 Sisi + 8 Titik Sudut = 12 Rusuk + 2 (14 = 14).",
        },
        "fragments": [
            "Unsur bangun ruang meliputi sisi, rusuk, dan titik sudut.",
            "Diagonal sisi ada pada permukaan bidang, diagonal ruang melintasi bagian dalam.",
            "Kaidah Euler: S + T = R + 2.",
        ],
        "quiz": [
            _quiz("Garis yang menghubungkan dua titik sudut berhadapan pada satu sisi disebut?",
                  ["Diagonal Sisi", "Diagonal Ruang", "Rusuk"], 0,
                  "Diagonal sisi menghubungkan titik sudut berhadapan pada sebuah sisi."),
            _quiz("Jika sebuah bangun ruang memiliki 5 sisi dan 9 rusuk, berapakah titik sudutnya?",
                  ["5", "6", "8"], 1, "S + T = R + 2 -> 5 + T = 11 -> T = 6."),
            _quiz("Bangun ruang yang dibatasi dua poligon kongruen yang sejajar adalah?",
                  ["Limas", "Prisma", "Bola"], 1, "Prisma dibentuk oleh dua poligon kongruen yang sejajar."),
        ],
    },
}

# ---------------------------------------------
# Trigonometri
# ---------------------------------------------
TRIGONOMETRI: Dict[int, Dict[str, Any]] = {
    1: {
        "title": "Rasio Dasar (SinDemi & KosSami)",
        "content": (
            "Sinus adalah perbandingan sisi depan dengan sisi miring (Sin-De-Mi). Kosinus adalah "
            "perbandingan sisi samping dengan sisi miring (Kos-Sa-Mi)."
        ),
        "variants": {
            LearningStyle.VISUAL: "Sisi miring (r) selalu berada di depan sudut siku-siku.",
        },
        "fragments": [
            "Sinus adalah perbandingan sisi depan sudut dengan sisi miring.",
            "Kosinus adalah perbandingan sisi samping sudut dengan sisi miring.",
            "Teorema Pythagoras membantu mencari sisi yang hilang: a^2 = b^2 + c^2.",
        ],
        "quiz": [
            _quiz("Jika sisi depan = 3 dan sisi miring = 5, berapakah nilai sinusnya?",
                  ["3/5", "4/5", "3/4"], 0, "Sinus adalah perbandingan Depan / Miring."),
            _quiz("Sisi terpanjang pada segitiga siku-siku disebut?",
                  ["Sisi Mendatar", "Sisi Tegak", "Hipotenusa"], 2, "Hipotenusa adalah sisi terpanjang."),
        ],
    },
    3: {
        "title": "Tangen & Identitas Kebalikan",
        "content": (
            "Tangen adalah perbandingan sisi depan dengan sisi samping (Tan-De-Sa), sama dengan "
            "Sin/Cos. Sekan, Kosekan, dan Kotangen adalah kebalikan Cos, Sin, dan Tan."
        ),
        "variants": {
            LearningStyle.VISUAL: "Pola Hafalan: Sin ↔ Cosec | Cos ↔ Sec | Tan ↔ Cot.",
        },
        "fragments": [
            "Tangen adalah perbandingan sisi depan dengan sisi samping.",
            "Nilai Tan juga bisa didapat dari Sin dibagi Cos.",
            "Sec = 1/Cos, Cosec = 1/Sin, Cot = 1/Tan.",
        ],
        "quiz": [
            _quiz("Manakah perbandingan yang tepat untuk Tangen?",
                  ["Samping / Miring", "Depan / Samping", "Depan / Miring"], 1,
                  "Tangen adalah sisi depan dibagi sisi samping."),
            _quiz("Sekan merupakan kebalikan dari fungsi?", ["Sinus", "Kosinus", "Tangen"], 1,
                  "Sekan adalah kebalikan dari kosinus."),
        ],
    },
    5: {
        "title": "Aplikasi Dunia Nyata & Elevasi",
        "content": (
            "Sudut elevasi terbentuk antara pandangan mata ke atas dengan garis mendatar. "
            "Dengan tangen dan sudut elevasi kita bisa mengukur tinggi gedung tanpa memanjat."
        ),
        "variants": {
            LearningStyle.VISUAL: (
                "Bayangkan garis horizontal mata ke objek. Sudut ke atas adalah Elevasi, "
                "sudut ke bawah adalah Depresi."
            ),
        },
        "fragments": [
            "Sudut elevasi terbentuk saat mata memandang ke atas dari garis mendatar.",
            "Tinggi pohon atau gedung bisa diukur dengan tangen dan sudut elevasi.",
        ],
        "quiz": [
            _quiz("Sudut yang terbentuk saat mata memandang puncak pohon disebut?",
                  ["Sudut Depresi", "Sudut Elevasi", "Sudut Siku-siku"], 1,
                  "Melihat objek di ketinggian memanfaatkan sudut elevasi."),
            _quiz("Bidang pekerjaan apa yang sangat terbantu oleh konsep trigonometri?",
                  ["Koki", "Arsitek", "Penulis"], 1, "Arsitek memakai trigonometri untuk kemiringan dan ketinggian."),
        ],
    },
}

CURRICULA: Dict[str, Dict[int, Dict[str, Any]]] = {
    "aljabar": ALJABAR,
    "geometri": GEOMETRI,
    "trigonometri": TRIGONOMETRI,
}


# ---------------------------------------------
# Lookups
# ---------------------------------------------
def normalize_topic(topic: str) -> str:
    return " ".join(topic.lower().split())


def get_curriculum(topic: str) -> Optional[Dict[int, Dict[str, Any]]]:
    return CURRICULA.get(normalize_topic(topic))


def has_curriculum(topic: str) -> bool:
    return get_curriculum(topic) is not None


def final_level(topic: str) -> Optional[int]:
    levels = get_curriculum(topic)
    return max(levels) if levels else None


def next_level(topic: str, level: int) -> int:
    """Next authored level after `level`; topics without a curriculum just count up."""
    levels = get_curriculum(topic)
    if not levels:
        return level + 1
    later = sorted(lvl for lvl in levels if lvl > level)
    return later[0] if later else level + 1


def styled_content(topic: str, level: int, style: LearningStyle) -> Optional[str]:
    """Authored explanation for (topic, level), preferring the learner's style variant."""
    levels = get_curriculum(topic)
    if not levels or level not in levels:
        return None
    entry = levels[level]
    return entry.get("variants", {}).get(style) or entry["content"]


def static_lesson(topic: str, level: int) -> Optional[Lesson]:
    levels = get_curriculum(topic)
    if not levels or level not in levels:
        return None
    entry = levels[level]
    slug = normalize_topic(topic).replace(" ", "-")
    fragments = [
        Fragment(id=f"{slug}-{level}-{i + 1}", order=i + 1, text=text)
        for i, text in enumerate(entry["fragments"])
    ]
    return Lesson(
        topic=topic,
        level=level,
        title=entry["title"],
        fragments=fragments,
        quiz=[QuizItem(**q) for q in entry["quiz"]],
        final_level=final_level(topic),
    )


def lesson_key(topic: str, level: int) -> str:
    return f"lesson:{normalize_topic(topic)}:{level}"


async def _stored_lesson(store: DocumentStore, topic: str, level: int) -> Optional[Dict[str, Any]]:
    try:
        return await store.get(lesson_key(topic, level))
    except StoreError as e:
        logger.warning(f"[Curriculum] ⚠️ Lesson lookup failed, using authored content: {e}")
        return None


async def lesson_exists(store: DocumentStore, topic: str, level: int) -> bool:
    if static_lesson(topic, level) is not None:
        return True
    return bool(await _stored_lesson(store, topic, level))


async def _resolve_final_level(store: DocumentStore, topic: str, level: int,
                               declared: Optional[int]) -> Optional[int]:
    """A level with nothing after it is the topic's final level, wherever the lesson came from."""
    if not await lesson_exists(store, topic, next_level(topic, level)):
        return level
    if declared is not None and declared > level:
        return declared
    return None


async def load_lesson(store: DocumentStore, topic: str, level: int) -> Lesson:
    """Lesson stored for (topic, level), else the authored one. Raises LessonNotFound."""
    doc = await _stored_lesson(store, topic, level)
    if doc:
        doc.setdefault("topic", topic)
        doc.setdefault("level", level)
        declared = doc.pop("final_level", None) or final_level(topic)
        lesson = Lesson(**doc)
    else:
        lesson = static_lesson(topic, level)
        if lesson is None:
            raise LessonNotFound(f"No lesson for topic={topic!r} level={level}")
        declared = lesson.final_level

    resolved = await _resolve_final_level(store, topic, level, declared)
    return lesson.model_copy(update={"final_level": resolved})


# ---------------------------------------------
# Seeding
# ---------------------------------------------
# Starter lessons for topics without an authored curriculum.
SAMPLE_LESSONS: List[Dict[str, Any]] = [
    {
        "topic": "Statistika",
        "level": 1,
        "title": "Mengenal Statistika & Pemusatan Data",
        "fragments": [
            "Statistika adalah ilmu mengumpulkan, menganalisis, dan menafsirkan data.",
            "Mean adalah rata-rata nilai, Median adalah nilai tengah, dan Modus adalah nilai "
            "yang paling sering muncul.",
        ],
        "quiz": [
            _quiz("Nilai tengah dari sekumpulan data yang telah diurutkan disebut?",
                  ["Mean", "Modus", "Median", "Range"], 2, "Median adalah nilai tengah data terurut."),
        ],
    },
    {
        "topic": "Kalkulus",
        "level": 1,
        "title": "Gerbang Kalkulus: Limit, Turunan, Integral",
        "fragments": [
            "Kalkulus berfokus pada perubahan, meliputi limit, turunan, dan integral.",
            "Turunan (derivatif) mengukur seberapa cepat suatu fungsi berubah pada titik tertentu.",
        ],
        "quiz": [
            _quiz("Cabang matematika yang mempelajari laju perubahan adalah?",
                  ["Aljabar", "Geometri", "Kalkulus", "Trigonometri"], 2,
                  "Kalkulus mempelajari laju perubahan."),
        ],
    },
    {
        "topic": "Logika",
        "level": 1,
        "title": "Logika Matematika & Implikasi",
        "fragments": [
            "Logika matematika menggunakan operator seperti AND, OR, NOT, dan IMPLIKASI untuk "
            "menentukan kebenaran argumen.",
            "Pernyataan 'Jika P maka Q' bernilai salah HANYA jika P benar dan Q salah.",
        ],
        "quiz": [
            _quiz("Ingkaran dari pernyataan 'Semua siswa lulus' adalah?",
                  ["Semua siswa tidak lulus", "Ada siswa yang tidak lulus",
                   "Tidak ada siswa yang lulus", "Beberapa siswa lulus"], 1,
                  "Ingkaran 'semua' adalah 'ada yang tidak'."),
        ],
    },
]


def lesson_document(sample: Dict[str, Any]) -> Dict[str, Any]:
    slug = normalize_topic(sample["topic"]).replace(" ", "-")
    level = sample["level"]
    lesson = Lesson(
        topic=sample["topic"],
        level=level,
        title=sample.get("title", ""),
        fragments=[
            Fragment(id=f"{slug}-{level}-{i + 1}", order=i + 1, text=text)
            for i, text in enumerate(sample["fragments"])
        ],
        quiz=[QuizItem(**q) for q in sample["quiz"]],
    )
    return lesson.model_dump(mode="json", exclude={"final_level"})


async def seed_lessons(store: DocumentStore, samples: Optional[List[Dict[str, Any]]] = None) -> List[str]:
    """Upsert starter lessons into the store. Topics with an authored curriculum are
    skipped so the stored copy never shadows the richer authored lesson."""
    written = []
    for sample in samples if samples is not None else SAMPLE_LESSONS:
        if has_curriculum(sample["topic"]):
            logger.info(f"[Curriculum] Skipping seed for authored topic {sample['topic']}")
            continue
        key = lesson_key(sample["topic"], sample["level"])
        await store.set(key, lesson_document(sample))
        written.append(key)
    logger.info(f"[Curriculum] 🌱 Seeded {len(written)} lessons")
    return written
