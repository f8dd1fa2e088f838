"""Translated fixed strings for outbound messages.

Dynamic content (office names, notes from the index or a provider) is passed
through as-is; only the scaffolding around it is looked up here.
"""

import logging
from typing import Dict

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"

CATALOG: Dict[str, Dict[str, str]] = {
    "en": {
        "service": "Service: {service}",
        "documents": "Documents to carry:",
        "processing_time": "Estimated processing time: {time}",
        "disclaimer": "Note: this information was generated by AI and could not be verified against official records. Please confirm with the office before visiting.",
        "no_offices": "Sorry, we could not find an office for {service} near you.",
        "address": "Address: {address}",
        "hours": "Hours",
        "weekday": "Mon-Fri: {hours}",
        "saturday": "Sat: {hours}",
        "sunday": "Sun: {hours}",
        "holiday": "Holidays: {hours}",
        "phone": "Phone: {phone}",
        "distance": "Distance: {km} km",
        "travel_time": "Travel time: {time}",
        "apology": "Sorry, we could not find information for your request right now. Please try again later, or call the citizen helpline 1800-11-0031 or visit your nearest Citizen Service Centre for help.",
        "clarify": "Could you tell me a little more about which government service you need? For example: \"renew my passport\" or \"apply for a ration card\".",
        "greeting": "Welcome! I can help you find the right government office. First, a few quick questions.",
        "ask_name": "What is your name?",
        "ask_address": "What is your address? A full address, a landmark or your area is fine.",
        "ask_city": "Which city do you live in?",
        "ask_state": "Which state do you live in?",
        "ask_language": "Which language would you like replies in? (for example English, Hindi, Marathi)",
        "onboarding_done": "Thanks, {name}! Your profile is saved. Ask me about any government service.",
        "profile_updated": "Your profile has been updated.",
        "empty_answer": "I didn't catch that.",
    },
    "hi": {
        "service": "सेवा: {service}",
        "documents": "साथ ले जाने वाले दस्तावेज़:",
        "processing_time": "अनुमानित प्रोसेसिंग समय: {time}",
        "disclaimer": "ध्यान दें: यह जानकारी AI द्वारा तैयार की गई है और आधिकारिक रिकॉर्ड से सत्यापित नहीं है। जाने से पहले कार्यालय से पुष्टि करें।",
        "no_offices": "क्षमा करें, आपके पास {service} के लिए कोई कार्यालय नहीं मिला।",
        "address": "पता: {address}",
        "hours": "समय",
        "weekday": "सोम-शुक्र: {hours}",
        "saturday": "शनि: {hours}",
        "sunday": "रवि: {hours}",
        "holiday": "छुट्टियाँ: {hours}",
        "phone": "फ़ोन: {phone}",
        "distance": "दूरी: {km} किमी",
        "travel_time": "यात्रा समय: {time}",
        "apology": "क्षमा करें, अभी आपके अनुरोध की जानकारी नहीं मिल सकी। कृपया बाद में पुनः प्रयास करें, या नागरिक हेल्पलाइन 1800-11-0031 पर कॉल करें या नज़दीकी नागरिक सेवा केंद्र पर जाएँ।",
        "clarify": "कृपया बताएँ कि आपको कौन-सी सरकारी सेवा चाहिए? उदाहरण: \"पासपोर्ट नवीनीकरण\" या \"राशन कार्ड के लिए आवेदन\"।",
        "greeting": "स्वागत है! मैं सही सरकारी कार्यालय खोजने में आपकी मदद कर सकता हूँ। पहले कुछ छोटे सवाल।",
        "ask_name": "आपका नाम क्या है?",
        "ask_address": "आपका पता क्या है? पूरा पता, कोई लैंडमार्क या इलाका चलेगा।",
        "ask_city": "आप किस शहर में रहते हैं?",
        "ask_state": "आप किस राज्य में रहते हैं?",
        "ask_language": "आप किस भाषा में जवाब चाहते हैं? (जैसे English, हिंदी, मराठी)",
        "onboarding_done": "धन्यवाद, {name}! आपकी प्रोफ़ाइल सहेज ली गई है। किसी भी सरकारी सेवा के बारे में पूछें।",
        "profile_updated": "आपकी प्रोफ़ाइल अपडेट हो गई है।",
        "empty_answer": "मैं समझ नहीं पाया।",
    },
    "mr": {
        "service": "सेवा: {service}",
        "documents": "सोबत न्यायची कागदपत्रे:",
        "processing_time": "अंदाजे प्रक्रिया वेळ: {time}",
        "disclaimer": "टीप: ही माहिती AI ने तयार केली आहे आणि अधिकृत नोंदींशी पडताळलेली नाही. भेट देण्यापूर्वी कार्यालयाशी खात्री करा.",
        "no_offices": "क्षमस्व, तुमच्या जवळ {service} साठी कार्यालय सापडले नाही.",
        "address": "पत्ता: {address}",
        "hours": "वेळ",
        "weekday": "सोम-शुक्र: {hours}",
        "saturday": "शनि: {hours}",
        "sunday": "रवि: {hours}",
        "holiday": "सुट्ट्या: {hours}",
        "phone": "फोन: {phone}",
        "distance": "अंतर: {km} किमी",
        "travel_time": "प्रवास वेळ: {time}",
        "apology": "क्षमस्व, सध्या तुमच्या विनंतीची माहिती मिळू शकली नाही. कृपया नंतर पुन्हा प्रयत्न करा, किंवा नागरिक हेल्पलाइन 1800-11-0031 वर कॉल करा किंवा जवळच्या नागरी सुविधा केंद्राला भेट द्या.",
        "clarify": "तुम्हाला कोणती सरकारी सेवा हवी आहे ते थोडे अधिक सांगाल का? उदा. \"पासपोर्ट नूतनीकरण\" किंवा \"रेशन कार्ड अर्ज\".",
        "greeting": "स्वागत आहे! योग्य सरकारी कार्यालय शोधण्यात मी मदत करू शकतो. आधी काही छोटे प्रश्न.",
        "ask_name": "तुमचे नाव काय आहे?",
        "ask_address": "तुमचा पत्ता काय आहे? पूर्ण पत्ता, एखादी खूण किंवा परिसर चालेल.",
        "ask_city": "तुम्ही कोणत्या शहरात राहता?",
        "ask_state": "तुम्ही कोणत्या राज्यात राहता?",
        "ask_language": "तुम्हाला कोणत्या भाषेत उत्तरे हवी आहेत? (उदा. English, हिंदी, मराठी)",
        "onboarding_done": "धन्यवाद, {name}! तुमची प्रोफाइल जतन झाली. कोणत्याही सरकारी सेवेबद्दल विचारा.",
        "profile_updated": "तुमची प्रोफाइल अद्ययावत झाली आहे.",
        "empty_answer": "मला ते समजले नाही.",
    },
}


def translate(key: str, language: str = DEFAULT_LANGUAGE, **values) -> str:
    """Look up ``key`` for ``language``, falling back to English."""
    table = CATALOG.get((language or DEFAULT_LANGUAGE).lower().split("-")[0], CATALOG[DEFAULT_LANGUAGE])
    template = table.get(key)
    if template is None:
        logger.debug("Missing %s translation for %s; using English", language, key)
        template = CATALOG[DEFAULT_LANGUAGE][key]
    return template.format(**values)
