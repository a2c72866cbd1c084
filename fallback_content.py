"""Canned offline content. Used when the generative service cannot answer.

`offline_explanation` is total: every topic resolves to at least DEFAULT_FALLBACK.
"""

import random
from typing import Dict, Optional

from models import ContentMode, LearningStyle

ALJABAR_FALLBACK: Dict[int, str] = {
    1: """### 💡 Pengantar Aljabar - Level 1

**🎯 Analogi Dunia Nyata: Timbangan Dapur**

Bayangkan aljabar adalah **timbangan** yang harus selalu seimbang. Apa pun yang kamu lakukan di satu sisi, **harus kamu lakukan juga di sisi lain**.

**📝 Langkah Penyelesaian Persamaan Linear:**
1. **Identifikasi Komponen**: variabel, konstanta, dan koefisien.
2. **Kelompokkan Suku Sejenis**: yang pindah ruas, ganti tanda!
3. **Selesaikan Variabel**: bagi kedua ruas dengan koefisien.

**🧮 Contoh:** $$2x + 5 = 13 \\Rightarrow 2x = 8 \\Rightarrow x = 4$$

**📐 Rumus Umum:** $$ax + b = c \\Rightarrow x = \\frac{c - b}{a}$$

> "Yang pindah rumah, ganti tanda!" 🏠➡️🏠""",
    2: """### 💡 Sistem Persamaan Linear Dua Variabel (SPLDV) - Level 2

**🎯 Analogi: Detektif Belanja**

Dua petunjuk harga ("2 apel + 3 jeruk = 15.000", "1 apel + 2 jeruk = 8.000") cukup untuk menemukan harga masing-masing buah.

**📝 Metode:**
- **Substitusi**: nyatakan satu variabel dalam variabel lain, lalu masukkan ke persamaan kedua.
- **Eliminasi**: samakan koefisien, lalu kurangkan kedua persamaan.

**💡 Tips:** pakai substitusi jika ada koefisien 1, eliminasi jika koefisiennya rumit.""",
    3: """### 💡 Pertidaksamaan Linear - Level 3

**🎯 Analogi: Batas Kecepatan**

Rambu "maksimal 60 km/jam" berarti $$v \\leq 60$$. Pertidaksamaan punya **banyak jawaban** dalam satu rentang.

**⚠️ ATURAN EMAS:** jika mengalikan atau membagi dengan **bilangan negatif**, tanda pertidaksamaan **BERBALIK**.

$$-2x > 6 \\Rightarrow x < -3$$""",
    4: """### 💡 Persamaan Kuadrat - Level 4

**🎯 Analogi: Lintasan Bola**

Lintasan bola yang dilempar membentuk parabola, yaitu grafik persamaan kuadrat $$ax^2 + bx + c = 0$$.

**📝 Cara Menyelesaikan:**
1. **Pemfaktoran**: cari dua angka yang dikali $$c$$ dan dijumlah $$b$$.
2. **Rumus ABC**: $$x = \\frac{-b \\pm \\sqrt{b^2 - 4ac}}{2a}$$

**💡 Diskriminan** $$D = b^2 - 4ac$$ menentukan banyaknya akar.""",
    5: """### 💡 Aplikasi Aljabar dalam Kehidupan Nyata - Level 5

**📝 Strategi Soal Cerita:**
1. **BACA** soal dua kali.
2. **IDENTIFIKASI** angka dan kata kunci.
3. **VARIABELKAN** apa yang dicari.
4. **MODELKAN** menjadi persamaan.
5. **SELESAIKAN** dan **PERIKSA** dengan substitusi balik.

**🧮 Contoh:** umur Ayah 4 kali umur Budi, 5 tahun lagi 3 kali. $$4x + 5 = 3(x + 5) \\Rightarrow x = 10$$""",
}

TRIGONOMETRI_FALLBACK: Dict[int, str] = {
    1: """### 💡 Pengantar Trigonometri - Level 1

**🎯 Analogi:** Trigonometri seperti GPS internal untuk mengukur sudut dan jarak!

- $$\\sin \\theta = \\frac{\\text{depan}}{\\text{miring}}$$
- $$\\cos \\theta = \\frac{\\text{samping}}{\\text{miring}}$$
- $$\\tan \\theta = \\frac{\\text{depan}}{\\text{samping}}$$

**Tips Mengingat:** "SOH-CAH-TOA".""",
}

DEFAULT_FALLBACK = """### 💡 Panduan Belajar Matematika

**📝 Langkah Sistematis Mengerjakan Soal:**
1. **Baca dengan Teliti**: garis bawahi kata kunci dan angka penting.
2. **Identifikasi Masalah**: apa yang diketahui, apa yang ditanyakan?
3. **Rencanakan Strategi**: pilih rumus yang sesuai.
4. **Eksekusi**: tulis setiap langkah dengan rapi.
5. **Verifikasi**: periksa jawaban dengan substitusi.

**💡 Tips Umum:**
- Latihan rutin lebih baik dari belajar maraton.
- Pahami konsep, bukan hafal rumus.

*Konten offline - Data dari cache lokal*"""

TOPIC_FALLBACKS: Dict[str, Dict[int, str]] = {
    "aljabar": ALJABAR_FALLBACK,
    "trigonometri": TRIGONOMETRI_FALLBACK,
}

WELCOME_FALLBACK: Dict[LearningStyle, str] = {
    LearningStyle.VISUAL: "Halo! Mari kita bedah konsep {topic} melalui peta konsep dan diagram yang sudah disiapkan untukmu.",
    LearningStyle.AUDITORY: "Selamat datang kembali. Dengarkan baik-baik, kita bahas inti materi {topic} level ini bersama.",
    LearningStyle.KINESTHETIC: "Sudah siap beraksi? Ayo langsung praktikkan {topic} ke dalam studi kasus nyata!",
    LearningStyle.DEFAULT: "Selamat datang! Ayo kita mulai belajar {topic} langkah demi langkah.",
}

REPORT_FALLBACK = (
    "Perjalanan belajarmu terus berjalan. Emosi yang muncul saat belajar adalah hal yang wajar, "
    "dan setiap sesi membuatmu semakin kuat. Tips minggu ini: ulangi satu materi yang terasa "
    "paling sulit selama 10 menit setiap hari."
)

STYLE_TIPS: Dict[LearningStyle, str] = {
    LearningStyle.VISUAL: "💡 **Tips Visual**: Coba gambarkan soal ceritanya dulu.",
    LearningStyle.AUDITORY: "💡 **Tips Auditori**: Coba jelaskan ulang jawabanmu dengan suara keras.",
    LearningStyle.KINESTHETIC: "💡 **Tips Kinestetik**: Gunakan jari atau benda sekitar untuk simulasi hitungan.",
}


def offline_explanation(topic: str, level: int, mode: ContentMode = ContentMode.EXPLAIN,
                        style: LearningStyle = LearningStyle.DEFAULT) -> str:
    """Never empty, never raises."""
    if mode == ContentMode.WELCOME:
        return WELCOME_FALLBACK.get(style, WELCOME_FALLBACK[LearningStyle.DEFAULT]).format(topic=topic)
    if mode == ContentMode.REPORT:
        return REPORT_FALLBACK

    by_level = TOPIC_FALLBACKS.get(" ".join(topic.lower().split()))
    if by_level:
        return by_level.get(level) or by_level.get(1) or DEFAULT_FALLBACK
    return DEFAULT_FALLBACK


def style_tip(style: LearningStyle, rng: Optional[random.Random] = None) -> str:
    if style in STYLE_TIPS:
        return STYLE_TIPS[style]
    return (rng or random).choice(list(STYLE_TIPS.values()))


def offline_evaluation_message(score: int, total: int, emotion: str, topic: str,
                               style: LearningStyle = LearningStyle.DEFAULT) -> str:
    """Empathetic message used when the emotion classifier is unavailable."""
    percent = round(100 * score / total) if total else 0
    if total and score / total >= 0.5:
        greeting = "Hai! Aku Lumi. 👋"
        body = (
            f"**Keren!** Akurasi kuis kamu mencapai **{percent}%**. "
            f"Aku melihat energi *{emotion}* darimu. Ini saatnya lanjut ke tantangan berikutnya!"
        )
        closing = "Siap untuk tantangan baru? Aku yakin kamu bisa! 🚀"
    else:
        greeting = "Halo! Lumi di sini. Jangan sedih ya... 🤗"
        body = (
            f"Skor **{percent}%** hanyalah angka awal. Wajar kok merasa begitu saat belajar hal baru. "
            f"Kamu hanya perlu sedikit latihan lagi di **{topic}**."
        )
        closing = "Yuk kita coba lagi pelan-pelan. Aku temani sampai bisa! 💪"
    return f"# {greeting}\n\n{body}\n\n{style_tip(style)}\n\n> {closing}"
