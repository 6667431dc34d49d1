import httpx
import pytest

from gymstudio.core.validation import (
    fetch_address_by_cep,
    format_cep,
    format_cnpj,
    format_cpf,
    format_phone,
    normalize_phone,
    unmask,
    validate_cep,
    validate_cnpj,
    validate_cpf,
    validate_email,
    validate_phone,
)


def test_masks_format_partial_and_complete_values():
    assert unmask("529.982.247-25") == "52998224725"
    assert format_cpf("52998224725") == "529.982.247-25"
    assert format_cpf("5299") == "529.9"
    assert format_cnpj("11222333000181") == "11.222.333/0001-81"
    assert format_phone("11987654321") == "(11) 98765-4321"
    assert format_phone("1134567890") == "(11) 3456-7890"
    assert format_phone("") == ""
    assert format_cep("01310100") == "01310-100"


@pytest.mark.parametrize(
    "mask, raw",
    [
        (format_cpf, "52998224725"),
        (format_cpf, "5299822"),
        (format_cpf, "529982247251234"),
        (format_cnpj, "11222333000181"),
        (format_cnpj, "112223330"),
        (format_phone, "11987654321"),
        (format_phone, "1134567890"),
        (format_phone, "11"),
        (format_phone, "119876"),
        (format_cep, "01310100"),
        (format_cep, "0131"),
    ],
)
def test_masks_are_idempotent(mask, raw):
    masked = mask(raw)

    assert mask(masked) == masked
    assert unmask(masked) == unmask(raw)[: len(unmask(masked))]


def test_masks_truncate_extra_digits():
    assert format_cpf("529982247251234") == "529.982.247-25"
    assert format_cnpj("112223330001819999") == "11.222.333/0001-81"
    assert format_phone("119876543210000") == "(11) 98765-4321"
    assert format_cep("013101009") == "01310-100"


def test_cpf_checksum():
    assert validate_cpf("529.982.247-25")
    assert not validate_cpf("529.982.247-26")
    assert not validate_cpf("111.111.111-11")
    assert not validate_cpf("123")


def test_cnpj_checksum():
    assert validate_cnpj("11.222.333/0001-81")
    assert not validate_cnpj("11.222.333/0001-82")
    assert not validate_cnpj("00000000000000")


def test_contact_validators():
    assert validate_phone("(11) 98765-4321")
    assert not validate_phone("98765-4321")
    assert validate_cep("01310-100")
    assert validate_email(" ana@academia.com.br ")
    assert not validate_email("ana@academia")
    assert normalize_phone("+55 (11) 98765-4321") == "+5511987654321"
    assert normalize_phone("abc") is None


async def test_fetch_address_by_cep_parses_viacep_response():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/ws/01310100/json/"
        return httpx.Response(
            200,
            json={"cep": "01310-100", "logradouro": "Avenida Paulista", "bairro": "Bela Vista",
                  "localidade": "São Paulo", "uf": "SP"},
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        address = await fetch_address_by_cep("01310-100", http=http)

    assert address is not None
    assert address.one_line() == "Avenida Paulista, Bela Vista, São Paulo/SP"


@pytest.mark.parametrize(
    "response",
    [httpx.Response(200, json={"erro": True}), httpx.Response(500, text="boom")],
)
async def test_fetch_address_by_cep_returns_none_on_unknown_or_failure(response):
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)) as http:
        assert await fetch_address_by_cep("01310100", http=http) is None


async def test_fetch_address_by_cep_skips_malformed_cep():
    assert await fetch_address_by_cep("123") is None
