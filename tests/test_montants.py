"""Calcul des montants HT / TVA / TTC."""

from decimal import Decimal

from app.services.montants import (
    Montants, arrondir, calculer_ligne, calculer_totaux, depuis_ht, depuis_ttc, en_decimal
)


def test_ligne_ttc_egal_ht_plus_tva():
    m = calculer_ligne(3, "19.99", 20)
    assert m.ht == Decimal("59.97")
    assert m.tva == Decimal("11.99")
    assert m.ttc == m.ht + m.tva == Decimal("71.96")


def test_ligne_arrondi_demi_superieur():
    assert calculer_ligne(1, "0.125", 0).ht == Decimal("0.13")
    assert calculer_ligne("1.5", "33.33", 10).ht == Decimal("50.00")


def test_ligne_floats_sans_artefact_binaire():
    m = calculer_ligne(3, 0.1, 20)
    assert m == Montants(Decimal("0.30"), Decimal("0.06"), Decimal("0.36"))


def test_valeur_non_numerique_donne_nan():
    assert en_decimal("abc").is_nan()
    assert en_decimal(None).is_nan()
    assert calculer_ligne("abc", 10, 20).ht.is_nan()
    assert arrondir("n/a").is_nan()


def test_totaux_ignorent_les_sections():
    lignes = [
        calculer_ligne(2, 100, 20),
        None,
        calculer_ligne(1, "49.99", 10),
    ]
    totaux = calculer_totaux(lignes)
    assert totaux.ht == Decimal("249.99")
    assert totaux.tva == Decimal("45.00")
    assert totaux.ttc == Decimal("294.99")


def test_totaux_deterministes():
    lignes = [calculer_ligne(q, "12.345", 5.5) for q in (1, 2, 3)]
    assert calculer_totaux(lignes) == calculer_totaux(list(lignes))


def test_totaux_vides():
    assert calculer_totaux([]) == Montants(Decimal("0"), Decimal("0"), Decimal("0"))


def test_depuis_ttc():
    m = depuis_ttc("1234.56", 20)
    assert m.ht == Decimal("1028.80")
    assert m.tva == Decimal("205.76")
    assert m.ttc == Decimal("1234.56")


def test_depuis_ht():
    m = depuis_ht(540, 20)
    assert m == Montants(Decimal("540.00"), Decimal("108.00"), Decimal("648.00"))
