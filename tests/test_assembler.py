import dataclasses

from office_finder.messaging.assembler import PLATFORM_FORMATS, ResponseAssembler, platform_format, shorten
from office_finder.messaging.catalog import translate
from office_finder.models import CandidateOffice, GenericOrigin, OfficeTimings, Provenance, ServiceRecommendation

from fakes import index_office, live_office


def make_rec(offices, provenance=Provenance.INDEX_HIGH, **kwargs):
    return ServiceRecommendation(service_type="passport renewal", offices=offices, provenance=provenance, **kwargs)


def test_one_main_message_plus_one_per_office():
    offices = [
        index_office("RPO Pune", address="Sakhar Sankul", city="Pune", timings=OfficeTimings(weekday="9:30 AM - 5:30 PM")),
        index_office("PSK Mundhwa", address="Mundhwa Road, Pune"),
    ]
    rec = make_rec(offices, required_documents=["Old passport"], processing_time="30 days")

    messages = ResponseAssembler().assemble(rec, "en")

    assert [message.kind for message in messages] == ["main", "office", "office"]
    assert messages[0].text.splitlines() == [
        "Service: passport renewal",
        "Documents to carry:",
        "- Old passport",
        "Estimated processing time: 30 days",
    ]
    assert "Service:" not in messages[1].text
    assert "Documents" not in messages[2].text
    assert "Address: Sakhar Sankul, Pune" in messages[1].text
    assert "Mon-Fri: 9:30 AM - 5:30 PM" in messages[1].text
    assert "Address: Mundhwa Road, Pune" in messages[2].text


def test_no_offices_yields_single_notice_with_guidance():
    rec = make_rec([], provenance=Provenance.GENERIC, notes="Apply online first.")

    messages = ResponseAssembler().assemble(rec, "en")

    assert len(messages) == 1
    assert messages[0].kind == "notice"
    lines = messages[0].text.splitlines()
    assert lines[0] == translate("no_offices", "en", service="passport renewal")
    assert "Apply online first." in lines
    assert lines[-1] == translate("disclaimer", "en")


def test_generic_offices_carry_disclaimer_in_main_message():
    generic = CandidateOffice(name="PSK", address="Mundhwa Road", origin=GenericOrigin(provider_id="openai"))
    rec = make_rec([generic], provenance=Provenance.GENERIC)

    messages = ResponseAssembler().assemble(rec, "en")

    assert translate("disclaimer", "en") in messages[0].text
    assert translate("disclaimer", "en") not in messages[1].text


def test_verified_results_have_no_disclaimer():
    messages = ResponseAssembler().assemble(make_rec([live_office("PSK")], provenance=Provenance.LIVE), "en")
    assert translate("disclaimer", "en") not in messages[0].text


def test_bold_markers_follow_platform():
    office = live_office("PSK", timings=OfficeTimings(sunday="Closed"), phone="+91 20 2567 1234", travel_time="20 min")
    office = dataclasses.replace(office, distance_km=3.456)

    whatsapp = ResponseAssembler().assemble(make_rec([office]), "en", PLATFORM_FORMATS["whatsapp"])[1].text
    telegram = ResponseAssembler().assemble(make_rec([office]), "en", platform_format("telegram"))[1].text
    plain = ResponseAssembler().assemble(make_rec([office]), "en")[1].text

    assert whatsapp.splitlines()[0] == "*PSK*"
    assert "Sun: *Closed*" in whatsapp
    assert "Hours" in whatsapp.splitlines()
    assert telegram.splitlines()[0] == "<b>PSK</b>"
    assert plain.splitlines()[0] == "PSK"
    assert "Distance: 3.5 km" in plain
    assert "Travel time: 20 min" in plain
    assert "Phone: +91 20 2567 1234" in plain
    assert "Sun: Closed" in plain


def test_telegram_html_escapes_dynamic_text():
    office = live_office("Seva Kendra <Pune> & Co", address="Plot 5 & 6", timings=OfficeTimings(weekday="9 AM - 5 PM"))
    rec = make_rec([office], required_documents=["Form A & B"])

    main, office_message = ResponseAssembler().assemble(rec, "en", platform_format("telegram"))

    assert "- Form A &amp; B" in main.text
    assert office_message.text.splitlines()[0] == "<b>Seva Kendra &lt;Pune&gt; &amp; Co</b>"
    assert "Address: Plot 5 &amp; 6" in office_message.text
    assert "Mon-Fri: <b>9 AM - 5 PM</b>" in office_message.text

    plain = ResponseAssembler().assemble(rec, "en")[1].text
    assert plain.splitlines()[0] == "Seva Kendra <Pune> & Co"


def test_translated_scaffolding_keeps_dynamic_content():
    rec = make_rec([index_office("Regional Passport Office")], required_documents=["Old passport"])

    messages = ResponseAssembler().assemble(rec, "hi")

    assert messages[0].text.startswith(translate("service", "hi", service="passport renewal"))
    assert "- Old passport" in messages[0].text
    assert messages[1].text.startswith("Regional Passport Office")


def test_unknown_language_falls_back_to_english():
    messages = ResponseAssembler().assemble(make_rec([index_office("PSK")]), "fr")
    assert messages[0].text.startswith("Service: passport renewal")


def test_notes_are_shortened_on_word_boundary():
    rec = make_rec([index_office("PSK")], notes="word " * 50)

    text = ResponseAssembler(notes_max_chars=20).assemble(rec, "en")[0].text

    assert text.splitlines()[-1] == "word word word word..."


def test_shorten_leaves_short_text_alone():
    assert shorten("  short   note ", 50) == "short note"
    assert platform_format("unknown") == PLATFORM_FORMATS["plain"]
